import json
import logging
import math
import re
from datetime import datetime, date
from decimal import Decimal
from typing import Any, List, Optional, Union

import pandas as pd

from crm.models.errors import ValidationError

logger = logging.getLogger(__name__)

# Parsing helpers for dates, numbers, booleans
# Slash dates are ambiguous (03/04 vs 04/03), only ISO is accepted
DATE_FORMATS = [
    "%Y-%m-%d",
]
DATETIME_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%fZ",   # JSON-serialised JS Date
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
]
TRUE_STRINGS = ("true", "1", "t", "yes", "y", "on")
FALSE_STRINGS = ("false", "0", "f", "no", "n", "off")

INTEGER_RE = re.compile(r"^[+-]?\d+$")
DECIMAL_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
# Commas only as thousands separators: "1,250" or "12,000.5"
GROUPED_RE = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")
# Beyond float range
MAX_EXPONENT = 308

def is_blank(value: Any) -> bool:
    """None, NaN and whitespace-only strings all count as 'no value'."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return False
    return bool(pd.isna(value))

def parse_date(value: Any) -> Optional[date]:
    """
    Parses a calendar date from a date, datetime or string.
    Time of day is discarded. Returns None if parsing fails or value is empty.
    """
    if is_blank(value):
        return None

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    value_str = str(value).strip()

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value_str, fmt).date()
        except ValueError:
            continue
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(value_str, fmt).date()
        except ValueError:
            continue

    # Offsets like "+02:00"
    try:
        return datetime.fromisoformat(value_str).date()
    except ValueError:
        return None

def parse_bool(value: Any) -> Optional[bool]:
    if is_blank(value):
        return None
    if isinstance(value, bool):
        return value

    s = str(value).lower().strip()
    if s in TRUE_STRINGS:
        return True
    if s in FALSE_STRINGS:
        return False
    return None

def parse_number(value: Any) -> Optional[Union[int, float]]:
    """
    Parses an int or float. Integral values come back as int, kept exact
    however large. Commas are accepted only as thousands separators.
    Returns None for empty, malformed and non-finite input.
    """
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value) if value.is_integer() else value

    text = str(value).strip()
    if GROUPED_RE.match(text):
        text = text.replace(",", "")
    if INTEGER_RE.match(text):
        try:
            return int(text)
        except ValueError:  # over the interpreter's int digit limit
            return None
    if not DECIMAL_RE.match(text):
        return None

    number = Decimal(text)
    if number.adjusted() > MAX_EXPONENT:
        return None
    if number == number.to_integral_value():
        return int(number)
    return float(number)

def parse_options(raw: Any) -> List[str]:
    """
    Canonicalises select options to a list of strings.
    Accepts a list, a JSON array string or a comma-joined string; blanks and
    repeated entries are dropped, order is kept.
    """
    if is_blank(raw):
        return []

    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith("["):
            try:
                raw = json.loads(text)
            except json.JSONDecodeError:
                raise ValidationError("Options must be a JSON array or a comma-separated list.")
            if not isinstance(raw, list):
                raise ValidationError("Options must be a JSON array or a comma-separated list.")
        else:
            raw = text.split(",")

    if not isinstance(raw, (list, tuple)):
        raise ValidationError("Options must be a list of strings.")

    options: List[str] = []
    for item in raw:
        if is_blank(item):
            continue
        if isinstance(item, (list, tuple, set, dict)):
            raise ValidationError("Options must be a list of strings.")
        opt = str(item).strip()
        if opt not in options:
            options.append(opt)
    return options

def dump_options(options: Optional[List[str]]) -> Optional[str]:
    if not options:
        return None
    return json.dumps(options)

def load_options(options_json: Optional[str]) -> Optional[List[str]]:
    """Reads stored options. Older rows may hold a comma-joined string."""
    if not options_json:
        return None
    try:
        return parse_options(options_json)
    except ValidationError:
        logger.warning("Unreadable options payload %r, treating as empty", options_json)
        return []

# STORAGE CONVERSION
#----------------------------------------------------------------
def to_storage(
    field_type: str,
    value: Any,
    options: Optional[List[str]] = None,
    field_name: str = "",
) -> Optional[str]:
    """
    Validates a raw value against a field type and returns the text payload to store.
    Returns None for empty values (nothing is stored). Raises ValidationError otherwise.
    """
    if is_blank(value):
        return None

    label = f"'{field_name}'" if field_name else "custom field"

    if isinstance(value, (list, tuple, set, dict)):
        raise ValidationError(f"Value for {label} must be a single value.")

    if field_type == "text":
        return str(value)

    if field_type == "number":
        number = parse_number(value)
        if number is None:
            raise ValidationError(f"Value '{value}' for {label} is not a number.")
        return str(number)

    if field_type == "date":
        d = parse_date(value)
        if d is None:
            raise ValidationError(f"Value '{value}' for {label} is not a valid date.")
        return d.isoformat()

    if field_type == "boolean":
        b = parse_bool(value)
        if b is None:
            raise ValidationError(f"Value '{value}' for {label} is not a boolean.")
        return "true" if b else "false"

    if field_type == "select":
        choice = str(value).strip()
        if choice not in (options or []):
            raise ValidationError(
                f"Value '{value}' for {label} is not one of the allowed options: {options or []}."
            )
        return choice

    raise ValidationError(f"Unknown field type '{field_type}'.")

def from_storage(field_type: str, payload: Optional[str]) -> Any:
    """
    Interprets a stored payload using the field's current type.
    A payload that does not fit the type (e.g. the type was changed later) is returned as-is.
    """
    if payload is None:
        return None

    if field_type == "number":
        parsed: Any = parse_number(payload)
    elif field_type == "date":
        parsed = parse_date(payload)
    elif field_type == "boolean":
        parsed = parse_bool(payload)
    else:
        return payload

    if parsed is None:
        logger.debug("Stored value %r does not parse as %s", payload, field_type)
        return payload
    return parsed
