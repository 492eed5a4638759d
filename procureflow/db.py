from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from procureflow.config import settings


class Base(DeclarativeBase):
    pass


_engine = None


def get_engine():
    global _engine
    if _engine is None:
        options = {"pool_pre_ping": True}
        if not settings.database_url.startswith("sqlite"):
            options.update(
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_timeout=settings.db_pool_timeout,
                pool_recycle=settings.db_pool_recycle,
            )
        _engine = create_engine(settings.database_url, **options)
    return _engine


SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)


def get_db():
    """Database session dependency for FastAPI.

    Yields a session and closes it after the request. Uncommitted work is
    discarded on close, so a transition that raises leaves nothing behind.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
