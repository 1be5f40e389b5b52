"""Connection factory for built-in connection types."""

from typing import Any, Callable, Dict

from copyloader.config import PostgresConnectionConfig
from copyloader.utils import logging as logging_module

ConnectionFactory = Callable[[str, Dict[str, Any]], Any]

_FACTORIES: Dict[str, ConnectionFactory] = {}


def register_connection_factory(type_name: str, factory: ConnectionFactory) -> None:
    """Register a factory for a connection ``type``."""
    _FACTORIES[type_name] = factory


def create_connection(name: str, config: Dict[str, Any]) -> Any:
    """Create a connection from a config dict; ``type`` defaults to postgres."""
    type_name = config.get("type", "postgres")
    if type_name not in _FACTORIES:
        raise ValueError(
            f"Connection '{name}' has unknown type '{type_name}'. "
            f"Available: {sorted(_FACTORIES)}"
        )
    return _FACTORIES[type_name](name, config)


def create_postgres_connection(name: str, config: Dict[str, Any]) -> Any:
    """Factory for PostgreSQL / Greenplum connections."""
    from copyloader.connections.postgres import PostgresConnection

    host = config.get("host") or config.get("server")
    if not host:
        raise ValueError(f"Connection '{name}' missing 'host' or 'server'")
    if not config.get("database"):
        raise ValueError(f"Connection '{name}' missing 'database'")

    auth_config = config.get("auth", {}) or {}
    username = auth_config.get("username") or config.get("username")
    password = auth_config.get("password") or config.get("password")

    if password:
        logging_module.logger.register_secret(password)

    return PostgresConnection(
        host=host,
        database=config["database"],
        port=int(config.get("port", 5432)),
        username=username,
        password=password,
        sslmode=config.get("sslmode"),
        connect_timeout=int(config.get("connect_timeout", 30)),
        options=config.get("options"),
    )


def connection_from_config(config: PostgresConnectionConfig) -> Any:
    """Build a connection from validated load options through the type registry."""
    return create_connection("load", config.model_dump())


def register_builtins():
    """Register all built-in connection factories."""
    register_connection_factory("postgres", create_postgres_connection)
    register_connection_factory("postgresql", create_postgres_connection)
    register_connection_factory("greenplum", create_postgres_connection)


register_builtins()
