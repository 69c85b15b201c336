import threading

import pytest
from unittest.mock import MagicMock, patch
from sqlalchemy import create_engine, text

from crm.models.errors import ConflictError
from crm.services.schema_sync import SchemaSynchronizer, check_schema

# --- Mutual exclusion ---

def test_mutation_scope_is_reusable():
    sync = SchemaSynchronizer(lock_timeout=0.1)
    with sync.mutation_scope():
        pass
    # Released on exit, so a second entry works
    with sync.mutation_scope():
        pass

def test_mutation_scope_released_after_error():
    sync = SchemaSynchronizer(lock_timeout=0.1)
    with pytest.raises(RuntimeError):
        with sync.mutation_scope():
            raise RuntimeError("boom")

    with sync.mutation_scope():
        pass

def test_concurrent_mutation_times_out_with_conflict():
    """
    Goal: While one definition change holds the scope, another one waiting
    past the timeout gets ConflictError instead of blocking forever.
    """
    sync = SchemaSynchronizer(lock_timeout=0.05)
    entered = threading.Event()
    release = threading.Event()

    def hold_scope():
        with sync.mutation_scope():
            entered.set()
            release.wait(timeout=5)

    holder = threading.Thread(target=hold_scope)
    holder.start()
    try:
        assert entered.wait(timeout=5)
        with pytest.raises(ConflictError):
            with sync.mutation_scope():
                pass
    finally:
        release.set()
        holder.join()

# --- Storage hooks ---

def test_retire_deletes_field_values():
    sync = SchemaSynchronizer()
    db = MagicMock()
    field = MagicMock(id=7)

    with patch("crm.services.schema_sync.value_store.delete_values_for_field", return_value=3) as delete:
        assert sync.retire(db, field) == 3

    delete.assert_called_once_with(db, 7)

def test_provision_and_migrate_issue_no_sql():
    sync = SchemaSynchronizer()
    db = MagicMock()
    field = MagicMock(id=1, data_type="number")

    sync.provision(db, field)
    sync.migrate(db, field, previous_type="text")

    db.execute.assert_not_called()

# --- Schema drift check ---

def test_check_schema_ok(db_engine):
    assert check_schema(db_engine) == []

def test_check_schema_reports_missing_tables_and_columns(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'old.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE customers (id INTEGER PRIMARY KEY, name VARCHAR(100))"))

    missing = check_schema(engine)

    assert "field_definitions (table)" in missing
    assert "field_values (table)" in missing
    assert "customers.email" in missing
    assert "customers.name" not in missing
    engine.dispose()
