"""Unit tests for connection factory."""

from unittest.mock import MagicMock, patch

import pytest

from copyloader.config import PostgresConnectionConfig
from copyloader.connections import factory
from copyloader.connections.factory import (
    connection_from_config,
    create_connection,
    create_postgres_connection,
    register_connection_factory,
)
from copyloader.connections.postgres import PostgresConnection
from copyloader.utils import logging as logging_module


class TestCreatePostgresConnection:
    """Tests for create_postgres_connection factory."""

    def test_creates_connection(self):
        """Should create PostgresConnection with config."""
        conn = create_postgres_connection(
            "gp", {"host": "gp-master", "database": "dw", "port": "6543"}
        )

        assert isinstance(conn, PostgresConnection)
        assert conn.host == "gp-master"
        assert conn.port == 6543

    def test_server_alias(self):
        """Should accept 'server' instead of 'host'."""
        conn = create_postgres_connection("gp", {"server": "gp-master", "database": "dw"})
        assert conn.host == "gp-master"

    def test_auth_block(self):
        """Should read credentials from the auth block."""
        conn = create_postgres_connection(
            "gp",
            {"host": "h", "database": "dw", "auth": {"username": "etl", "password": "pw"}},
        )

        assert conn.username == "etl"
        assert conn.password == "pw"

    def test_password_registered_as_secret(self):
        """Should redact the password from logs."""
        create_postgres_connection("gp", {"host": "h", "database": "dw", "password": "hunter2"})
        assert "hunter2" in logging_module.logger._secrets

    def test_missing_host(self):
        with pytest.raises(ValueError, match="missing 'host'"):
            create_postgres_connection("gp", {"database": "dw"})

    def test_missing_database(self):
        with pytest.raises(ValueError, match="missing 'database'"):
            create_postgres_connection("gp", {"host": "h"})


class TestCreateConnection:
    """Tests for type dispatch."""

    @pytest.mark.parametrize("type_name", ["postgres", "postgresql", "greenplum"])
    def test_builtin_types(self, type_name):
        conn = create_connection("c", {"type": type_name, "host": "h", "database": "dw"})
        assert isinstance(conn, PostgresConnection)

    def test_type_defaults_to_postgres(self):
        assert isinstance(create_connection("c", {"host": "h", "database": "dw"}), PostgresConnection)

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="unknown type 'oracle'"):
            create_connection("c", {"type": "oracle"})

    def test_register_custom_factory(self):
        sentinel = object()

        with patch.dict(factory._FACTORIES):
            register_connection_factory("fake", lambda name, config: sentinel)
            assert create_connection("c", {"type": "fake"}) is sentinel

        assert "fake" not in factory._FACTORIES


class TestConnectionFromConfig:
    """Tests for building the load connection from validated options."""

    def test_builds_postgres_connection(self):
        config = PostgresConnectionConfig(host="h", database="dw", connect_timeout=5)

        conn = connection_from_config(config)

        assert isinstance(conn, PostgresConnection)
        assert conn.connect_timeout == 5

    def test_greenplum_type(self):
        config = PostgresConnectionConfig(type="greenplum", host="gp-master", database="dw")
        assert isinstance(connection_from_config(config), PostgresConnection)

    def test_dispatches_through_registry(self):
        built = MagicMock()
        config = PostgresConnectionConfig(host="h", database="dw")

        with patch.dict(factory._FACTORIES, {"postgres": built}):
            conn = connection_from_config(config)

        assert conn is built.return_value
        name, data = built.call_args.args
        assert name == "load"
        assert data["host"] == "h"
        assert data["type"] == "postgres"

    def test_unknown_type(self):
        config = PostgresConnectionConfig(type="oracle", host="h", database="dw")

        with pytest.raises(ValueError, match="unknown type 'oracle'"):
            connection_from_config(config)
