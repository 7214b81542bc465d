"""PostgreSQL connection pooling shared by the SoulBloom repositories.

Pattern scans and notification sends run on worker threads, so the pool
is a psycopg2 ThreadedConnectionPool created on first use. Credentials
come from DB_* environment variables, or from a Secrets Manager secret
when DB_SECRET_ARN is set.
"""
import json
import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, Optional

import boto3
from psycopg2 import pool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatabaseConfig:
    host: str = "localhost"
    port: int = 5432
    database: str = "soulbloom"
    username: str = ""
    password: str = ""
    min_connections: int = 1
    max_connections: int = 10
    connect_timeout: int = 10
    ssl_mode: str = "require"

    def __post_init__(self):
        if not 0 < self.min_connections <= self.max_connections:
            raise ValueError(
                f"Invalid pool size: min={self.min_connections}, max={self.max_connections}"
            )

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Create config from environment variables.

        Environment variables:
            DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD
            DB_MIN_CONN / DB_MAX_CONN: pool bounds (default 1 / 10)
            DB_SSL_MODE: libpq sslmode (default require)
            DB_SECRET_ARN: Secrets Manager secret overriding host and credentials
        """
        config = cls(
            host=os.getenv("DB_HOST", "localhost"),
            port=int(os.getenv("DB_PORT", "5432")),
            database=os.getenv("DB_NAME", "soulbloom"),
            username=os.getenv("DB_USER", ""),
            password=os.getenv("DB_PASSWORD", ""),
            min_connections=int(os.getenv("DB_MIN_CONN", "1")),
            max_connections=int(os.getenv("DB_MAX_CONN", "10")),
            ssl_mode=os.getenv("DB_SSL_MODE", "require"),
        )
        secret_arn = os.getenv("DB_SECRET_ARN")
        if secret_arn:
            region = os.getenv("AWS_REGION", "us-east-1")
            config = config.with_secret(load_secret(secret_arn, region))
        return config

    def with_secret(self, secret: Dict[str, Any]) -> "DatabaseConfig":
        """Overlay an RDS-style secret (host, port, dbname, username, password)."""
        return replace(
            self,
            host=secret.get("host", self.host),
            port=int(secret.get("port", self.port)),
            database=secret.get("dbname", self.database),
            username=secret.get("username", self.username),
            password=secret.get("password", self.password),
        )

    def connect_kwargs(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.username,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
            "sslmode": self.ssl_mode,
        }


def load_secret(secret_arn: str, region: str) -> Dict[str, Any]:
    """Fetch and decode a JSON secret from Secrets Manager."""
    try:
        client = boto3.client("secretsmanager", region_name=region)
        secret = client.get_secret_value(SecretId=secret_arn)["SecretString"]
        return json.loads(secret)
    except Exception as e:
        logger.error(
            "DATABASE_SECRET_LOAD_FAILED",
            extra={"error_type": type(e).__name__, "region": region}
        )
        raise


class ConnectionManager:
    """Lazily pooled connections plus a commit/rollback transaction scope."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool: Optional[pool.ThreadedConnectionPool] = None
        self._pool_lock = threading.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._pool is not None

    def _get_pool(self) -> pool.ThreadedConnectionPool:
        # Workers may race to open the pool on the first scheduled pass
        with self._pool_lock:
            if self._pool is None:
                self._pool = pool.ThreadedConnectionPool(
                    self.config.min_connections,
                    self.config.max_connections,
                    **self.config.connect_kwargs(),
                )
                logger.info(
                    "CONNECTION_POOL_OPENED",
                    extra={
                        "host": self.config.host,
                        "database": self.config.database,
                        "max_connections": self.config.max_connections,
                    }
                )
            return self._pool

    @contextmanager
    def get_connection(self) -> Iterator[Any]:
        """Borrow a pooled connection for the duration of the block."""
        connection_pool = self._get_pool()
        conn = connection_pool.getconn()
        try:
            yield conn
        finally:
            connection_pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Yield a cursor; commit when the block exits cleanly, else roll back."""
        with self.get_connection() as conn:
            try:
                with conn.cursor() as cur:
                    yield cur
                conn.commit()
            except BaseException:
                conn.rollback()
                raise

    def close(self) -> None:
        with self._pool_lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
                logger.info("CONNECTION_POOL_CLOSED")


_connection_manager: Optional[ConnectionManager] = None


def get_connection_manager() -> ConnectionManager:
    """Process-wide connection manager configured from the environment."""
    global _connection_manager
    if _connection_manager is None:
        _connection_manager = ConnectionManager(DatabaseConfig.from_env())
    return _connection_manager
