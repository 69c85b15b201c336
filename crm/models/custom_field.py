from datetime import datetime
from typing import List, Optional, Literal, Union, get_args
from pydantic import BaseModel, Field

FieldType = Literal["text", "number", "date", "boolean", "select"]
FIELD_TYPES = get_args(FieldType)

class CustomField(BaseModel):
    """An administrator-defined customer attribute."""
    id: int
    name: str
    type: FieldType
    options: Optional[List[str]] = None  # Allowed values, select fields only
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class CustomFieldList(BaseModel):
    items: List[CustomField]

class CustomFieldPayload(BaseModel):
    # Kept loose on purpose: the registry owns the validation and reports ValidationError.
    # options may be a list, a JSON array string or a comma-joined string.
    name: str = ""
    type: str = ""
    options: Optional[Union[List[str], str]] = None

# Seeded on first start when SEED_DEFAULT_FIELDS is set
DEFAULT_FIELDS: List[dict] = [
    {"name": "Notes", "type": "text", "options": None},
    {"name": "Customer Type", "type": "select", "options": ["Regular", "VIP", "Corporate"]},
    {"name": "Annual Revenue", "type": "number", "options": None},
]

class SchemaHealth(BaseModel):
    ok: bool
    missing: List[str] = Field(default_factory=list)
