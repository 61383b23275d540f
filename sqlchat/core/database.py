import logging
from contextlib import contextmanager
from typing import Iterator, Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool, StaticPool
from sqlmodel import SQLModel, Session, create_engine as create_sqlmodel_engine
from dotenv import load_dotenv

from sqlchat.core.config import settings
from sqlchat.core.dialects import build_url, connect_args

load_dotenv()

logger = logging.getLogger(__name__)


class AppDatabase:
    """
    Application Database.
    Holds database configs, cached schemas, sessions, conversation turns,
    demo usage counters and per-user AI settings via SQLModel.
    """
    def __init__(self, url: Optional[str] = None):
        self.connection_string = url or settings.APP_DB_URL

        kwargs = {}
        if self.connection_string.startswith("sqlite"):
            # concurrent writers wait for the file lock instead of failing
            kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
            if ":memory:" in self.connection_string or self.connection_string == "sqlite://":
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True  # Auto-reconnect
            kwargs["pool_recycle"] = 3600

        self.engine = create_sqlmodel_engine(self.connection_string, **kwargs)
        logger.info("Connected to App Database: %s", self.engine.url.render_as_string(hide_password=True))
        self.init_metadata_tables()

    def init_metadata_tables(self):
        # Registers the table classes on SQLModel.metadata
        import sqlchat.core.models  # noqa: F401

        SQLModel.metadata.create_all(self.engine)
        logger.info("AppDB: Metadata tables initialized.")

    def get_session(self) -> Session:
        return Session(self.engine)


class DatabaseProvider:
    """
    Database Provider for Dependency Injection.
    """
    def __init__(self):
        self._app_db = None

    def get_app_db(self) -> AppDatabase:
        if not self._app_db:
            self._app_db = AppDatabase()
        return self._app_db

    def set_app_db(self, app_db: Optional[AppDatabase]):
        self._app_db = app_db


# Global instance
_db_provider = DatabaseProvider()


def get_db_provider() -> DatabaseProvider:
    return _db_provider


def get_app_db() -> AppDatabase:
    return get_db_provider().get_app_db()


@contextmanager
def open_target_engine(config) -> Iterator[Engine]:
    """
    Short-lived engine for one target database call.
    NullPool means every connection is really closed on release; the engine
    is disposed on every exit path.
    """
    url = build_url(config)
    engine = create_engine(
        url,
        poolclass=NullPool,
        connect_args=connect_args(config, settings.CONNECT_TIMEOUT),
    )
    try:
        yield engine
    finally:
        engine.dispose()
