import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy.orm import Session

from crm.db import models
from crm.db.database import session_scope
from crm.models.custom_field import CustomField, DEFAULT_FIELDS, FIELD_TYPES
from crm.models.errors import NotFoundError, ValidationError
from crm.services import coercion
from crm.services.schema_sync import synchronizer

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100

def _to_custom_field(row: models.FieldDefinition) -> CustomField:
    return CustomField(
        id=row.id,
        name=row.name,
        type=row.data_type,
        options=coercion.load_options(row.options_json),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

def _validate_definition(name: Any, data_type: Any, options: Any) -> Tuple[str, str, Optional[List[str]]]:
    """
    Checks a definition before anything is written.
    Returns the cleaned (name, type, options); options is None unless type is select.
    """
    clean_name = str(name).strip() if name is not None else ""
    if not clean_name:
        raise ValidationError("Field name is required.")
    if len(clean_name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Field name must be at most {MAX_NAME_LENGTH} characters.")

    clean_type = str(data_type).strip().lower() if data_type is not None else ""
    if clean_type not in FIELD_TYPES:
        raise ValidationError(
            f"Unknown field type '{data_type}'. Expected one of: {', '.join(FIELD_TYPES)}."
        )

    if clean_type != "select":
        return clean_name, clean_type, None

    clean_options = coercion.parse_options(options)
    if not clean_options:
        raise ValidationError("Select fields need at least one option.")
    return clean_name, clean_type, clean_options

def _get_row(db: Session, field_id: int) -> models.FieldDefinition:
    row = db.query(models.FieldDefinition).filter(models.FieldDefinition.id == field_id).first()
    if not row:
        raise NotFoundError("Custom field", field_id)
    return row

def list_fields() -> List[CustomField]:
    with session_scope() as db:
        rows = (
            db.query(models.FieldDefinition)
            .order_by(models.FieldDefinition.name, models.FieldDefinition.id)
            .all()
        )
        return [_to_custom_field(r) for r in rows]

def get_field(field_id: int) -> CustomField:
    with session_scope() as db:
        return _to_custom_field(_get_row(db, field_id))

def define_field(name: str, data_type: str, options: Any = None) -> CustomField:
    """
    Creates a field definition and provisions its storage in one transaction.
    """
    clean_name, clean_type, clean_options = _validate_definition(name, data_type, options)

    with synchronizer.mutation_scope():
        with session_scope() as db:
            row = models.FieldDefinition(
                name=clean_name,
                data_type=clean_type,
                options_json=coercion.dump_options(clean_options),
            )
            db.add(row)
            db.flush()  # assigns row.id
            synchronizer.provision(db, row)
            field = _to_custom_field(row)

    logger.info(
        "Defined custom field %s '%s' (%s)", field.id, field.name, field.type,
        extra={"extra_fields": {"field_id": field.id, "field_type": field.type}},
    )
    return field

def update_field(field_id: int, name: str, data_type: str, options: Any = None) -> CustomField:
    """
    Renames/retypes a field. Stored values are kept and read back with the new type.
    """
    clean_name, clean_type, clean_options = _validate_definition(name, data_type, options)

    with synchronizer.mutation_scope():
        with session_scope() as db:
            row = _get_row(db, field_id)
            previous_type = row.data_type

            row.name = clean_name
            row.data_type = clean_type
            row.options_json = coercion.dump_options(clean_options)
            db.flush()

            if previous_type != clean_type:
                synchronizer.migrate(db, row, previous_type)
            field = _to_custom_field(row)

    logger.info(
        "Updated custom field %s '%s' (%s)", field.id, field.name, field.type,
        extra={"extra_fields": {"field_id": field.id, "field_type": field.type}},
    )
    return field

def remove_field(field_id: int) -> None:
    """
    Deletes a field with all values that reference it.
    Values go first, in the same transaction as the definition.
    """
    with synchronizer.mutation_scope():
        with session_scope() as db:
            row = _get_row(db, field_id)
            removed = synchronizer.retire(db, row)
            db.delete(row)

    logger.info(
        "Removed custom field %s and %d stored values", field_id, removed,
        extra={"extra_fields": {"field_id": field_id, "values_removed": removed}},
    )

def seed_default_fields() -> int:
    """
    Defines the stock fields when the registry is empty.
    Returns how many were created.
    """
    with session_scope() as db:
        if db.query(models.FieldDefinition).first() is not None:
            return 0

    for default in DEFAULT_FIELDS:
        define_field(default["name"], default["type"], default["options"])
    logger.info("Seeded %d default custom fields", len(DEFAULT_FIELDS))
    return len(DEFAULT_FIELDS)
