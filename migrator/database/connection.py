# migrator/database/connection.py

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ..core.logging import DEBUG, ERROR, INFO, MigratorLogger, log_with_context
from ..types import DatabaseConfig


class DatabaseManager:
    """
    Engine and session lifecycle for the staging database.

    One manager per process. ``initialize`` connects and probes the
    database; ``shutdown`` releases every pooled connection and may be
    called any number of times.
    """

    def __init__(self, config: DatabaseConfig):
        if not config:
            raise ValueError("DatabaseConfig is required")

        self.config = config
        self.logger = MigratorLogger.get_logger('database.connection')
        self._engine: Optional[Engine] = None
        self._sessions: Optional[sessionmaker] = None

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.config.url).get_backend_name() == "sqlite"

    @property
    def location(self) -> str:
        """Host/database for logs, never the password"""
        url = make_url(self.config.url)
        if self.is_sqlite:
            return url.database or ":memory:"
        return f"{url.host or 'localhost'}:{url.port or ''}/{url.database or ''}"

    def _engine_options(self) -> Dict[str, Any]:
        if self.is_sqlite:
            # A single shared connection keeps an in-memory database alive between sessions
            return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
        return {
            "poolclass": QueuePool,
            "pool_size": self.config.pool_size,
            "max_overflow": self.config.max_overflow,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        }

    def initialize(self) -> None:
        if self._engine is not None:
            log_with_context(self.logger, DEBUG, "Staging database already initialized",
                             location=self.location)
            return

        engine = create_engine(self.config.url, **self._engine_options())
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            engine.dispose()
            log_with_context(self.logger, ERROR, "Staging database unreachable",
                             location=self.location, error=str(e))
            raise

        self._engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)
        log_with_context(self.logger, INFO, "Connected to staging database", location=self.location)

    def shutdown(self) -> None:
        engine, self._engine, self._sessions = self._engine, None, None
        if engine is not None:
            engine.dispose()
            log_with_context(self.logger, INFO, "Staging database connections released",
                             location=self.location)

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Staging database is not initialized")
        return self._engine

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        if self._sessions is None:
            raise RuntimeError("Staging database is not initialized")

        session = self._sessions()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def get_transaction(self) -> Iterator[Session]:
        """Session that commits on success and rolls back on error"""
        with self.get_session() as session:
            yield session
            session.commit()
