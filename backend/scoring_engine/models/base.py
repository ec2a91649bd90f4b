"""
Database base configuration for SQLAlchemy models.

SQLAlchemy 2.0 style with DeclarativeBase. The engine is synchronous: scoring
runs and psychometric audits are batch computations, not request handlers.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from scoring_engine.core.config import settings

DATABASE_URL = settings.DATABASE_URL

_connect_args = (
    {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)

engine = create_engine(
    DATABASE_URL,
    echo=settings.DEBUG,  # Only log SQL queries in debug mode
    pool_pre_ping=True,  # Verify connections are alive before using them
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """
    SQLAlchemy 2.0 declarative base class.
    """

    pass
