import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from crm.db import models
from crm.db.database import session_scope
from crm.models.customer import BASE_ATTRIBUTES, CustomerRecord
from crm.models.errors import NotFoundError, ValidationError
from crm.services import coercion, value_store

logger = logging.getLogger(__name__)

def _normalize_base(base: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validates base attributes and converts them to column values.
    Strings are stripped (blank -> None) and dob is reduced to a calendar date.
    Unknown keys are ignored.
    """
    base = base or {}
    clean: Dict[str, Any] = {}

    for attr, max_length in BASE_ATTRIBUTES.items():
        raw = base.get(attr)

        if attr == "dob":
            dob = coercion.parse_date(raw)
            if dob is None and not coercion.is_blank(raw):
                raise ValidationError(f"Date of birth '{raw}' is not a valid date.")
            clean[attr] = dob
            continue

        value = None if coercion.is_blank(raw) else str(raw).strip()
        if value is not None and max_length and len(value) > max_length:
            raise ValidationError(f"Customer {attr} must be at most {max_length} characters.")
        clean[attr] = value

    if not clean["name"]:
        raise ValidationError("Customer name is required.")
    return clean

def _to_record(row: models.Customer, custom_fields: Dict[int, Any]) -> CustomerRecord:
    return CustomerRecord(
        id=row.id,
        name=row.name,
        dob=row.dob,
        phone=row.phone,
        email=row.email,
        occupation=row.occupation,
        location=row.location,
        created_at=row.created_at,
        updated_at=row.updated_at,
        custom_fields=custom_fields,
    )

def _get_row(db: Session, customer_id: int) -> models.Customer:
    row = db.query(models.Customer).filter(models.Customer.id == customer_id).first()
    if not row:
        raise NotFoundError("Customer", customer_id)
    return row

def _assemble(db: Session, rows: List[models.Customer]) -> List[CustomerRecord]:
    values = value_store.get_values_for_customers(db, [r.id for r in rows])
    return [_to_record(r, values.get(r.id, {})) for r in rows]

def create_customer(base: Mapping[str, Any], custom_values: Optional[Mapping[Any, Any]] = None) -> CustomerRecord:
    """
    Saves a new customer and its custom values in one transaction.
    If the values can't be written the customer row is rolled back too.
    """
    clean = _normalize_base(base)

    with session_scope() as db:
        row = models.Customer(**clean)
        db.add(row)
        db.flush()  # assigns row.id for the value rows

        value_store.set_values(db, row.id, custom_values or {})
        record = _to_record(row, value_store.get_values(db, row.id))

    logger.info("Created customer %s", record.id, extra={"extra_fields": {"customer_id": record.id}})
    return record

def update_customer(
    customer_id: int,
    base: Mapping[str, Any],
    custom_values: Optional[Mapping[Any, Any]] = None,
) -> CustomerRecord:
    """
    Overwrites base attributes and replaces the full set of custom values.
    A field left out of `custom_values` is cleared.
    """
    clean = _normalize_base(base)

    with session_scope() as db:
        row = _get_row(db, customer_id)
        for attr, value in clean.items():
            setattr(row, attr, value)
        row.updated_at = datetime.now()

        value_store.set_values(db, row.id, custom_values or {})
        db.flush()
        record = _to_record(row, value_store.get_values(db, row.id))

    logger.info("Updated customer %s", customer_id, extra={"extra_fields": {"customer_id": customer_id}})
    return record

def get_customer(customer_id: int) -> CustomerRecord:
    with session_scope() as db:
        row = _get_row(db, customer_id)
        return _to_record(row, value_store.get_values(db, row.id))

def list_customers() -> List[CustomerRecord]:
    """All customers, newest first."""
    with session_scope() as db:
        rows = (
            db.query(models.Customer)
            .order_by(models.Customer.created_at.desc(), models.Customer.id.desc())
            .all()
        )
        return _assemble(db, rows)

def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

def search_customers(query: Optional[str]) -> List[CustomerRecord]:
    """
    Case-insensitive substring match on name, phone and email, newest first.
    A blank query returns every customer.
    """
    if coercion.is_blank(query):
        return list_customers()

    pattern = f"%{_escape_like(query.strip())}%"
    with session_scope() as db:
        rows = (
            db.query(models.Customer)
            .filter(
                or_(
                    models.Customer.name.ilike(pattern, escape="\\"),
                    models.Customer.phone.ilike(pattern, escape="\\"),
                    models.Customer.email.ilike(pattern, escape="\\"),
                )
            )
            .order_by(models.Customer.created_at.desc(), models.Customer.id.desc())
            .all()
        )
        return _assemble(db, rows)

def delete_customer(customer_id: int) -> None:
    with session_scope() as db:
        row = _get_row(db, customer_id)
        value_store.delete_values(db, row.id)
        db.delete(row)

    logger.info("Deleted customer %s", customer_id, extra={"extra_fields": {"customer_id": customer_id}})
