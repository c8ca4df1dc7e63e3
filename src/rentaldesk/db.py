from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from psycopg import Connection
from psycopg.conninfo import make_conninfo
from psycopg_pool import ConnectionPool, PoolTimeout

from .config import DbConfig

log = logging.getLogger(__name__)


class DbError(Exception):
    pass


class Db:
    """Shared connection pool handed to every component that touches the store.

    Each ``session()``/``transaction()`` borrows one connection and returns it
    to the pool on every exit path.
    """

    def __init__(self, cfg: DbConfig) -> None:
        self.cfg = cfg
        self._pool: ConnectionPool | None = None

    @property
    def pool(self) -> ConnectionPool:
        if self._pool is None:
            self._pool = ConnectionPool(
                conninfo=make_conninfo(
                    host=self.cfg.host,
                    port=self.cfg.port,
                    dbname=self.cfg.name,
                    user=self.cfg.user,
                    password=self.cfg.password,
                    sslmode=self.cfg.sslmode,
                ),
                min_size=self.cfg.pool_min_size,
                max_size=self.cfg.pool_max_size,
                timeout=self.cfg.pool_timeout,
                open=False,
            )
            self._pool.open()
        return self._pool

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    def acquire(self) -> Connection:
        try:
            return self.pool.getconn()
        except PoolTimeout as e:
            raise DbError(
                "Cannot connect to database. Check config.toml [db] and that PostgreSQL is running."
            ) from e

    def release(self, conn: Connection) -> None:
        self.pool.putconn(conn)

    @contextmanager
    def session(self) -> Iterator[Connection]:
        conn = self.acquire()
        try:
            yield conn
            # leave the connection idle, not inside a read transaction
            conn.rollback()
        finally:
            self.release(conn)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        conn = self.acquire()
        try:
            yield conn
            conn.commit()
        except Exception:
            try:
                conn.rollback()
            except Exception:
                log.warning("rollback failed", exc_info=True)
            raise
        finally:
            self.release(conn)
