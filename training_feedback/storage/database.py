"""
Database connection and session management
"""
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from training_feedback.config import get_database_url


class Base(DeclarativeBase):
    """Base class for all tables."""

    pass


def create_db_engine(database_url: str | None = None, echo: bool = False) -> Engine:
    """Create an engine for the given URL, defaulting to ``DATABASE_URL``."""
    url = database_url or get_database_url()

    if url.startswith("sqlite") and (url.endswith(":memory:") or url in ("sqlite://", "sqlite:///")):
        # Share one in-memory database across sessions and threads
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=300,  # Recycle connections every 5 minutes
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to the engine."""
    return sessionmaker(engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create tables if they don't exist"""
    # Import registers the tables on Base.metadata
    from training_feedback.storage import tables  # noqa: F401

    Base.metadata.create_all(engine)
