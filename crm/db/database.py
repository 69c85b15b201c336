import logging
import sqlite3
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from crm.core.config import settings
from crm.models.errors import StorageError

logger = logging.getLogger(__name__)

SQLALCHEMY_DATABASE_URL = settings.database_url()

connect_args = {}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args=connect_args, pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

def init_db():
    # Register the ORM tables on Base before creating them
    from crm.db import models  # noqa: F401

    Base.metadata.create_all(bind=engine)

@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Yields a session that commits when the block finishes and rolls back otherwise.
    Database errors come out as StorageError so callers see one error type.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Database operation failed")
        raise StorageError(f"Database operation failed: {e}") from e
    except Exception:
        db.rollback()
        raise
    finally:
        # Closing also discards anything left uncommitted (e.g. a cancelled request)
        db.close()
