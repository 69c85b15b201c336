import pytest
from unittest.mock import patch
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from crm.db.database import Base
from crm.db import models  # noqa: F401  (registers the tables on Base)

@pytest.fixture
def db_engine(tmp_path):
    """
    Goal: Give each test its own empty SQLite database.
    The services open sessions through crm.db.database.SessionLocal, so we
    point that at a sessionmaker bound to the throwaway engine.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    with patch("crm.db.database.SessionLocal", TestSession):
        yield engine

    engine.dispose()

@pytest.fixture
def db_session(db_engine):
    """A raw session on the test database, for calling the value store directly."""
    session = sessionmaker(bind=db_engine)()
    try:
        yield session
    finally:
        session.close()
