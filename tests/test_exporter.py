from datetime import date
from unittest.mock import patch

from crm.models.custom_field import CustomField
from crm.models.customer import CustomerRecord
from crm.services import customer_store, field_registry
from crm.services.exporter import BASE_COLUMNS, build_customer_frame, export_customers_csv

def test_build_customer_frame_flattens_custom_fields():
    """
    Goal: One row per customer, one column per field, blanks where a customer has no value.
    """
    fields = [
        CustomField(id=1, name="Notes", type="text"),
        CustomField(id=2, name="Tier", type="select", options=["Regular", "VIP"]),
    ]
    customers = [
        CustomerRecord(id=10, name="Ann", dob=date(1985, 5, 15), custom_fields={1: "hi", 2: "VIP"}),
        CustomerRecord(id=11, name="Bob", custom_fields={2: "Regular"}),
    ]

    df = build_customer_frame(customers, fields)

    assert list(df.columns) == BASE_COLUMNS + ["Notes", "Tier"]
    assert df["Tier"].tolist() == ["VIP", "Regular"]
    assert df.loc[0, "Notes"] == "hi"
    assert df["Notes"].isna().tolist() == [False, True]

def test_duplicate_field_names_get_distinct_columns():
    fields = [
        CustomField(id=1, name="Notes", type="text"),
        CustomField(id=2, name="Notes", type="text"),
        CustomField(id=3, name="email", type="text"),
    ]
    df = build_customer_frame([], fields)

    assert list(df.columns)[-3:] == ["Notes (1)", "Notes (2)", "email (3)"]
    assert df.empty

def test_export_customers_csv_end_to_end(db_engine):
    revenue = field_registry.define_field("Annual Revenue", "number")
    customer_store.create_customer({"name": "Ann", "email": "a@x.com"}, {revenue.id: "1200"})

    csv_text = export_customers_csv()

    header, row = csv_text.strip().splitlines()
    assert header.split(",")[-1] == "Annual Revenue"
    assert "Ann" in row
    assert row.endswith(",1200")

def test_export_uses_registry_and_store():
    with patch("crm.services.exporter.customer_store") as store, \
         patch("crm.services.exporter.field_registry") as registry:
        store.list_customers.return_value = []
        registry.list_fields.return_value = []

        csv_text = export_customers_csv()

    assert csv_text.strip() == ",".join(BASE_COLUMNS)
    store.list_customers.assert_called_once()
    registry.list_fields.assert_called_once()
