from __future__ import annotations

import logging
import time
from typing import Any, Generator

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from invoicegen.core.settings import Settings


logger = logging.getLogger(__name__)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_sqlite_memory(url: str) -> bool:
    return url in {"sqlite://", "sqlite+pysqlite://"} or ":memory:" in url


class Database:
    """Engine plus session factory, built once per process and passed to the app.

    Request handlers never reach for a module-level engine; they get sessions
    through :func:`get_db`, which reads the instance from ``app.state``.
    """

    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
    ) -> None:
        self.url = url
        engine_kwargs: dict[str, Any] = {
            "pool_pre_ping": True,
            "future": True,
        }
        if _is_sqlite(url):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if _is_sqlite_memory(url):
                # One shared connection, otherwise every checkout sees an empty database.
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs.update(
                {
                    "pool_size": pool_size,
                    "max_overflow": max_overflow,
                    "pool_timeout": pool_timeout,
                    "pool_recycle": pool_recycle,
                }
            )

        self.engine = create_engine(url, **engine_kwargs)
        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            class_=Session,
            future=True,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
        )

    def session(self) -> Session:
        return self.session_factory()

    def ping(self) -> None:
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))

    def wait_until_ready(self, *, retries: int = 5, delay: float = 5.0) -> None:
        attempts = max(retries, 1)
        for attempt in range(1, attempts + 1):
            try:
                self.ping()
            except OperationalError as exc:
                logger.warning(
                    "database_unreachable",
                    extra={"attempt": attempt, "max_attempts": attempts, "error": str(exc.orig or exc)},
                )
                if attempt >= attempts:
                    raise
                time.sleep(delay)
            else:
                logger.info("database_ready", extra={"attempt": attempt})
                return

    def create_all(self) -> None:
        # Importing the models package registers every table on Base.metadata.
        import invoicegen.models  # noqa: F401
        from invoicegen.db.base import Base

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Generator[Session, None, None]:
    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()
