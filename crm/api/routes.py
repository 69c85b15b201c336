from typing import Optional
from fastapi import APIRouter, HTTPException, Query, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from crm.db.database import engine, session_scope
from crm.models.custom_field import CustomField, CustomFieldList, CustomFieldPayload, SchemaHealth
from crm.models.customer import CustomerList, CustomerPayload, CustomerRecord
from crm.models.errors import (
    ConflictError,
    ErrorResponse,
    NotFoundError,
    StorageError,
    ValidationError,
)
from crm.services import customer_store, exporter, field_registry
from crm.services.schema_sync import check_schema

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

@router.get("/health", response_model=SchemaHealth)
def health():
    try:
        with session_scope() as db:
            db.execute(text("SELECT 1"))
        missing = check_schema(engine)
    except (StorageError, SQLAlchemyError) as e:
        raise HTTPException(status_code=503, detail=str(e))
    return SchemaHealth(ok=not missing, missing=missing)

# --- Custom field definitions ---

@router.get("/custom-fields", response_model=CustomFieldList, responses=ERROR_RESPONSES)
def list_custom_fields():
    try:
        return CustomFieldList(items=field_registry.list_fields())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.post(
    "/custom-fields",
    response_model=CustomField,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
def create_custom_field(payload: CustomFieldPayload):
    try:
        return field_registry.define_field(payload.name, payload.type, payload.options)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/custom-fields/{field_id}", response_model=CustomField, responses=ERROR_RESPONSES)
def get_custom_field(field_id: int):
    try:
        return field_registry.get_field(field_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.put("/custom-fields/{field_id}", response_model=CustomField, responses=ERROR_RESPONSES)
def update_custom_field(field_id: int, payload: CustomFieldPayload):
    try:
        return field_registry.update_field(field_id, payload.name, payload.type, payload.options)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.delete(
    "/custom-fields/{field_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERROR_RESPONSES,
)
def delete_custom_field(field_id: int):
    try:
        field_registry.remove_field(field_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# --- Customers ---

@router.get("/customers", response_model=CustomerList, responses=ERROR_RESPONSES)
def list_customers(search: Optional[str] = Query(None)):
    try:
        if search:
            return CustomerList(items=customer_store.search_customers(search))
        return CustomerList(items=customer_store.list_customers())
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/customers/search/{query}", response_model=CustomerList, responses=ERROR_RESPONSES)
def search_customers(query: str):
    try:
        return CustomerList(items=customer_store.search_customers(query))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.post(
    "/customers",
    response_model=CustomerRecord,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
def create_customer(payload: CustomerPayload):
    try:
        return customer_store.create_customer(payload.base_attributes(), payload.custom_fields)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/customers/{customer_id}", response_model=CustomerRecord, responses=ERROR_RESPONSES)
def get_customer(customer_id: int):
    try:
        return customer_store.get_customer(customer_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.put("/customers/{customer_id}", response_model=CustomerRecord, responses=ERROR_RESPONSES)
def update_customer(customer_id: int, payload: CustomerPayload):
    try:
        return customer_store.update_customer(
            customer_id, payload.base_attributes(), payload.custom_fields
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.delete(
    "/customers/{customer_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERROR_RESPONSES,
)
def delete_customer(customer_id: int):
    try:
        customer_store.delete_customer(customer_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# --- Export ---

@router.get("/export/customers.csv", responses={500: {"model": ErrorResponse}})
def export_customers():
    try:
        csv_text = exporter.export_customers_csv()
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="customers.csv"'},
    )
