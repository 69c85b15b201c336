import json
import logging

import pytest
from pydantic import ValidationError as PydanticValidationError

from crm.core.logging import JSONFormatter
from crm.models.custom_field import CustomField, CustomFieldPayload
from crm.models.customer import CustomerPayload
from crm.models.errors import NotFoundError

# --- Custom field models ---

def test_custom_field_initialization():
    field = CustomField(id=1, name="Tier", type="select", options=["Regular", "VIP"])

    assert field.options == ["Regular", "VIP"]

def test_custom_field_rejects_unknown_type():
    with pytest.raises(PydanticValidationError):
        CustomField(id=1, name="Colour", type="colour")

def test_payload_accepts_options_as_list_or_string():
    assert CustomFieldPayload(name="T", type="select", options=["a"]).options == ["a"]
    assert CustomFieldPayload(name="T", type="select", options="a,b").options == "a,b"

# --- Customer payload ---

def test_customer_payload_base_attributes():
    payload = CustomerPayload(name="Ann", dob="1990-01-01", custom_fields={"1": "x"})

    base = payload.base_attributes()

    assert base == {
        "name": "Ann",
        "dob": "1990-01-01",
        "phone": None,
        "email": None,
        "occupation": None,
        "location": None,
    }

# --- Errors & logging ---

def test_not_found_message():
    err = NotFoundError("Customer", 5)
    assert str(err) == "Customer with id 5 not found"
    assert err.resource_id == 5
    assert err.code == "not_found"

def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("crm.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.extra_fields = {"customer_id": 3}

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "hello world"
    assert data["level"] == "INFO"
    assert data["customer_id"] == 3
