from datetime import date, datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

# Base attribute -> max length, mirrors the customers table
BASE_ATTRIBUTES: Dict[str, Optional[int]] = {
    "name": 100,
    "dob": None,
    "phone": 20,
    "email": 100,
    "occupation": 100,
    "location": 100,
}

class CustomerPayload(BaseModel):
    name: Optional[str] = None
    dob: Optional[str] = None  # parsed by the customer store
    phone: Optional[str] = None
    email: Optional[str] = None
    occupation: Optional[str] = None
    location: Optional[str] = None
    # field_id -> raw value; keys that don't resolve to a field are dropped on save
    custom_fields: Dict[str, Any] = Field(default_factory=dict)

    def base_attributes(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"custom_fields"})

class CustomerRecord(BaseModel):
    id: int
    name: str
    dob: Optional[date] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    occupation: Optional[str] = None
    location: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    custom_fields: Dict[int, Any] = Field(default_factory=dict)  # field_id -> typed value

class CustomerList(BaseModel):
    items: List[CustomerRecord]
