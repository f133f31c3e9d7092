import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

import config
from services.errors import TransactionFailure

logger = logging.getLogger(__name__)


def create_db_engine(url):
    """Build an engine; SQLite connections are shared across request threads."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": 15}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


engine = create_db_engine(config.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db, action="write"):
    """Commit everything done inside the block, or nothing.

    Store errors roll back and surface as TransactionFailure; domain errors
    raised inside the block roll back and propagate unchanged.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Transaction failed during %s", action)
        raise TransactionFailure()
    except Exception:
        db.rollback()
        raise
