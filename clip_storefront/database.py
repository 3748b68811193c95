"""Relational store access - engines and session factories.

Two credential levels are kept apart:
- the service engine, used by checkout, webhook and download handling
- the read-only engine, used by presentation queries (search, clip page, success page)

When no read-only URL is configured both share one engine.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from clip_storefront.logging_config import get_logger
from clip_storefront.models import Base
from clip_storefront.models.store_config import DatabaseSettings

logger = get_logger(__name__)


def build_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine, sharing one connection for in-memory SQLite."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, echo=echo, pool_pre_ping=True)


class Database:
    """Engines and session factories for the relational store."""

    def __init__(self, url: str, readonly_url: Optional[str] = None, echo: bool = False):
        self.engine = build_engine(url, echo=echo)
        if readonly_url and readonly_url != url:
            self.readonly_engine = build_engine(readonly_url, echo=echo)
        else:
            self.readonly_engine = self.engine

        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._readonly_session_factory = sessionmaker(
            bind=self.readonly_engine, expire_on_commit=False
        )

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "Database":
        return cls(settings.url, readonly_url=settings.readonly_url, echo=settings.echo)

    def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(self.engine)
        logger.info("database_schema_ready", tables=sorted(Base.metadata.tables))

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Service-credential session; commits on success, rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def readonly_session(self) -> Iterator[Session]:
        """Read-only session for presentation queries; never commits."""
        session = self._readonly_session_factory()
        try:
            yield session
        finally:
            session.rollback()
            session.close()

    def ping(self) -> bool:
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("database_ping_failed", error=str(e), error_type=type(e).__name__)
            return False

    def dispose(self) -> None:
        self.engine.dispose()
        if self.readonly_engine is not self.engine:
            self.readonly_engine.dispose()

    def __repr__(self) -> str:
        return f"Database(url={self.engine.url!r})"
