from collections import Counter
from typing import Dict, List

import pandas as pd

from crm.models.custom_field import CustomField
from crm.models.customer import CustomerRecord
from crm.services import customer_store, field_registry

BASE_COLUMNS = ["id", "name", "dob", "phone", "email", "occupation", "location", "created_at", "updated_at"]

def _column_names(fields: List[CustomField]) -> Dict[int, str]:
    """
    Header per custom field. Field names are not unique, so a repeated
    name gets the field id appended, e.g. "Tier (7)".
    """
    counts = Counter(f.name for f in fields)
    names: Dict[int, str] = {}
    for f in fields:
        name = f.name if counts[f.name] == 1 else f"{f.name} ({f.id})"
        # Don't shadow a base column either
        if name in BASE_COLUMNS:
            name = f"{name} ({f.id})"
        names[f.id] = name
    return names

def build_customer_frame(customers: List[CustomerRecord], fields: List[CustomField]) -> pd.DataFrame:
    """
    Flattens customers into one row each: base attributes, then one column per custom field.
    Customers without a value for a field get an empty cell.
    """
    headers = _column_names(fields)
    columns = BASE_COLUMNS + [headers[f.id] for f in fields]

    rows = []
    for c in customers:
        row = c.model_dump(include=set(BASE_COLUMNS))
        for f in fields:
            row[headers[f.id]] = c.custom_fields.get(f.id)
        rows.append(row)

    return pd.DataFrame(rows, columns=columns)

def export_customers_csv() -> str:
    df = build_customer_frame(customer_store.list_customers(), field_registry.list_fields())
    return df.to_csv(index=False)
