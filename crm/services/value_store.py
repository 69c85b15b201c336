"""
Per-customer custom field values (one `field_values` row per customer and field).

Functions take the caller's session so value writes share the transaction of
the customer or field change that triggered them.
"""
import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from sqlalchemy.orm import Session

from crm.db import models
from crm.services import coercion

logger = logging.getLogger(__name__)

def _to_field_id(key: Any) -> Optional[int]:
    """Field ids arrive as ints or numeric strings (JSON object keys)."""
    if isinstance(key, bool):
        return None
    if isinstance(key, int):
        return key
    try:
        return int(str(key).strip())
    except ValueError:
        return None

def set_values(db: Session, customer_id: int, values: Mapping[Any, Any]) -> Dict[int, str]:
    """
    Replaces the customer's custom values with `values` (field_id -> raw value).

    Entries whose key is not a field id, or names a field that no longer exists,
    are dropped instead of failing the write. Empty values clear the field.
    Raises ValidationError before anything is written if a value does not fit
    its field. Returns the stored payloads keyed by field id.
    """
    requested: Dict[int, Any] = {}
    for key, raw in (values or {}).items():
        field_id = _to_field_id(key)
        if field_id is None:
            logger.debug("Dropping custom value with non-numeric field id %r", key)
            continue
        requested[field_id] = raw

    fields: Dict[int, models.FieldDefinition] = {}
    if requested:
        rows = (
            db.query(models.FieldDefinition)
            .filter(models.FieldDefinition.id.in_(list(requested)))
            .all()
        )
        fields = {f.id: f for f in rows}

    payloads: Dict[int, str] = {}
    for field_id, raw in requested.items():
        field = fields.get(field_id)
        if field is None:
            logger.debug("Dropping custom value for unknown field %s", field_id)
            continue

        payload = coercion.to_storage(
            field.data_type,
            raw,
            options=coercion.load_options(field.options_json),
            field_name=field.name,
        )
        if payload is not None:
            payloads[field_id] = payload

    # Full replace: the submitted map is the customer's complete set of values
    delete_values(db, customer_id)
    db.add_all(
        models.FieldValue(customer_id=customer_id, field_id=field_id, value=payload)
        for field_id, payload in payloads.items()
    )
    db.flush()
    return payloads

def get_values(db: Session, customer_id: int) -> Dict[int, Any]:
    """Returns field_id -> typed value for one customer (empty dict if none)."""
    return get_values_for_customers(db, [customer_id]).get(customer_id, {})

def get_values_for_customers(db: Session, customer_ids: Iterable[int]) -> Dict[int, Dict[int, Any]]:
    ids = list(customer_ids)
    result: Dict[int, Dict[int, Any]] = {cid: {} for cid in ids}
    if not ids:
        return result

    rows = (
        db.query(models.FieldValue.customer_id, models.FieldValue.field_id,
                 models.FieldValue.value, models.FieldDefinition.data_type)
        .join(models.FieldDefinition, models.FieldDefinition.id == models.FieldValue.field_id)
        .filter(models.FieldValue.customer_id.in_(ids))
        .all()
    )
    for customer_id, field_id, payload, data_type in rows:
        result[customer_id][field_id] = coercion.from_storage(data_type, payload)
    return result

def delete_values(db: Session, customer_id: int) -> int:
    return (
        db.query(models.FieldValue)
        .filter(models.FieldValue.customer_id == customer_id)
        .delete(synchronize_session=False)
    )

def delete_values_for_field(db: Session, field_id: int) -> int:
    return (
        db.query(models.FieldValue)
        .filter(models.FieldValue.field_id == field_id)
        .delete(synchronize_session=False)
    )
