from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from travel_crm.config import settings
from travel_crm.errors import ConfigurationError

Base = declarative_base()
SessionLocal = sessionmaker(autocommit=False, autoflush=False)

_engine: Optional[Engine] = None


def init_engine(url: Optional[str] = None) -> Engine:
    """
    Create the engine for the record store and bind SessionLocal to it.

    Args:
        url: SQLAlchemy URL; falls back to settings.DATABASE_URL

    Raises:
        ConfigurationError: if no URL is available
    """
    global _engine
    url = url or settings.DATABASE_URL
    if not url:
        raise ConfigurationError("DATABASE_URL is not configured")

    kwargs = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # in-memory DB must share one connection
            kwargs["poolclass"] = StaticPool

    _engine = create_engine(url, **kwargs)
    SessionLocal.configure(bind=_engine)
    return _engine


def get_engine() -> Engine:
    return _engine if _engine is not None else init_engine()


def get_db():
    get_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
