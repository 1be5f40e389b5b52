"""Connection implementations for copyloader."""

from copyloader.connections.base import BaseConnection
from copyloader.connections.factory import create_connection, connection_from_config
from copyloader.connections.postgres import PostgresConnection

__all__ = ["BaseConnection", "PostgresConnection", "create_connection", "connection_from_config"]
