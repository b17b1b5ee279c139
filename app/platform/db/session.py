from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.platform.config import settings

_ASYNC_DRIVER_PREFIXES = {
    "postgresql+asyncpg://": "postgresql://",
    "sqlite+aiosqlite://": "sqlite://",
}

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def to_sync_url(db_url: str) -> str:
    """Convert an async driver URL to its sync counterpart; API and worker share one engine type."""
    for async_prefix, sync_prefix in _ASYNC_DRIVER_PREFIXES.items():
        if db_url.startswith(async_prefix):
            return db_url.replace(async_prefix, sync_prefix, 1)
    return db_url


def build_engine(db_url: str) -> Engine:
    db_url = to_sync_url(db_url)

    if db_url.startswith("sqlite"):
        # single shared connection so an in-memory database survives across sessions
        return create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        db_url,
        pool_size=20,
        max_overflow=30,  # (burst capacity)
        pool_timeout=30,
        pool_pre_ping=True,
        pool_recycle=1800,
    )


def get_session_factory() -> sessionmaker:
    """Lazily create the process engine and its session factory."""
    global _engine, _session_factory

    if _session_factory is None:
        _engine = build_engine(settings.DATABASE_URL)
        _session_factory = sessionmaker(
            bind=_engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    return _session_factory

