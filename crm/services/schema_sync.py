"""
Keeps physical storage in line with the field registry.

Custom values live as rows in `field_values` (entity-attribute-value), so adding
or retyping a field needs no DDL; removing one deletes its rows. Every hook runs
on the caller's session so it commits or rolls back together with the
definition change.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Generator, List, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from crm.core.config import settings
from crm.db import models
from crm.models.errors import ConflictError
from crm.services import value_store

logger = logging.getLogger(__name__)

# Columns the services rely on, per table
EXPECTED_COLUMNS: Dict[str, List[str]] = {
    models.FieldDefinition.__tablename__: ["id", "name", "data_type", "options_json", "created_at", "updated_at"],
    models.Customer.__tablename__: [
        "id", "name", "dob", "phone", "email", "occupation", "location", "created_at", "updated_at",
    ],
    models.FieldValue.__tablename__: ["id", "customer_id", "field_id", "value"],
}

class SchemaSynchronizer:
    def __init__(self, lock_timeout: Optional[float] = None):
        self.lock_timeout = settings.SCHEMA_LOCK_TIMEOUT if lock_timeout is None else lock_timeout
        self._lock = threading.Lock()

    @contextmanager
    def mutation_scope(self) -> Generator[None, None, None]:
        """
        Serialises field-definition changes within the process.
        Raises ConflictError if another change holds the scope past lock_timeout.
        """
        if not self._lock.acquire(timeout=self.lock_timeout):
            raise ConflictError(
                "Another custom field change is in progress, try again shortly."
            )
        try:
            yield
        finally:
            self._lock.release()

    def provision(self, db: Session, field: models.FieldDefinition) -> None:
        # Values are rows, nothing to allocate
        logger.debug("Provisioned storage for field %s (%s)", field.id, field.data_type)

    def migrate(self, db: Session, field: models.FieldDefinition, previous_type: str) -> None:
        # Payloads stay as stored and are re-read with the new type
        if previous_type != field.data_type:
            logger.info(
                "Field %s changed type %s -> %s; stored values are reinterpreted on read",
                field.id, previous_type, field.data_type,
            )

    def retire(self, db: Session, field: models.FieldDefinition) -> int:
        removed = value_store.delete_values_for_field(db, field.id)
        logger.debug("Retired storage for field %s (%d values)", field.id, removed)
        return removed

def check_schema(engine: Engine) -> List[str]:
    """
    Compares the live database against the ORM tables.
    Returns the missing tables/columns, e.g. ["customers (table)", "field_values.value"].
    """
    missing: List[str] = []
    insp = sa_inspect(engine)

    for table, columns in EXPECTED_COLUMNS.items():
        if not insp.has_table(table):
            missing.append(f"{table} (table)")
            continue
        present = {c["name"] for c in insp.get_columns(table)}
        for col in columns:
            if col not in present:
                missing.append(f"{table}.{col}")

    if missing:
        logger.error("Database schema is out of date. Missing: %s", ", ".join(missing))
    return missing

synchronizer = SchemaSynchronizer()
