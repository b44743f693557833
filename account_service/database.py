# account_service/database.py
import os
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .log import get_logger

logger = get_logger("database")

# Base class which all database models inherit from
Base = declarative_base()


def _ensure_sqlite_dir(url: str) -> None:
    path = make_url(url).database
    if path:
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)


class Database:
    """Owns the engine and session factory for one database URL.

    Nothing is opened until ``connect()``; ``close()`` disposes the pool.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self._engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not connected")
        return self._engine

    def connect(self) -> "Database":
        if self._engine is not None:
            return self
        kwargs = {"echo": self.echo}
        if self.url.startswith("sqlite"):
            # SQLite connections are shared with FastAPI's worker threads
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.url or self.url in ("sqlite://", "sqlite+pysqlite://"):
                kwargs["poolclass"] = StaticPool
            else:
                _ensure_sqlite_dir(self.url)
        self._engine = create_engine(self.url, **kwargs)
        self._sessionmaker = sessionmaker(
            bind=self._engine, autoflush=False, expire_on_commit=False
        )
        logger.info("Connected to %s", self._engine.url.render_as_string(hide_password=True))
        return self

    def create_all(self) -> None:
        # imported for its side effect of registering the tables on Base
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables checked/created.")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Transactional session: commit on success, rollback on error."""
        if self._sessionmaker is None:
            raise RuntimeError("Database is not connected")
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._sessionmaker = None
            logger.info("Database connection closed")
