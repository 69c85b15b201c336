import pytest
from unittest.mock import MagicMock, patch
from sqlalchemy.exc import OperationalError

from crm.db.database import session_scope
from crm.models.errors import StorageError

# --- Fixtures for Database Mocking ---

@pytest.fixture
def mock_db_session():
    """
    Goal: Simulate a database session so we can watch commit/rollback/close.
    """
    with patch("crm.db.database.SessionLocal") as mock:
        session = MagicMock()
        mock.return_value = session
        yield session

def test_session_scope_commits_and_closes(mock_db_session):
    with session_scope() as db:
        db.add("row")

    mock_db_session.commit.assert_called_once()
    mock_db_session.rollback.assert_not_called()
    mock_db_session.close.assert_called_once()

def test_session_scope_wraps_database_errors(mock_db_session):
    """
    Goal: Driver errors surface as StorageError, after a rollback.
    """
    mock_db_session.commit.side_effect = OperationalError("COMMIT", {}, Exception("disk I/O error"))

    with pytest.raises(StorageError) as excinfo:
        with session_scope():
            pass

    assert isinstance(excinfo.value.__cause__, OperationalError)
    mock_db_session.rollback.assert_called_once()
    mock_db_session.close.assert_called_once()

def test_session_scope_rolls_back_other_errors(mock_db_session):
    """
    Goal: Domain errors pass through unchanged but nothing is committed.
    """
    with pytest.raises(ValueError):
        with session_scope():
            raise ValueError("bad input")

    mock_db_session.commit.assert_not_called()
    mock_db_session.rollback.assert_called_once()
    mock_db_session.close.assert_called_once()
