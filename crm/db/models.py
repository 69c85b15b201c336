from datetime import datetime

from sqlalchemy import Column, String, Text, Integer, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from crm.db.database import Base

class FieldDefinition(Base):
    __tablename__ = "field_definitions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)                # Not unique
    data_type = Column(String(20), nullable=False)            # text / number / date / boolean / select
    options_json = Column(Text, nullable=True)                # JSON array, select fields only
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    values = relationship(
        "FieldValue",
        back_populates="field",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False, index=True)
    dob = Column(Date, nullable=True)                         # Calendar date only
    phone = Column(String(20), nullable=True, index=True)
    email = Column(String(100), nullable=True, index=True)
    occupation = Column(String(100), nullable=True)
    location = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    values = relationship(
        "FieldValue",
        back_populates="customer",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

class FieldValue(Base):
    __tablename__ = "field_values"
    __table_args__ = (
        # A customer holds at most one value per field
        UniqueConstraint("customer_id", "field_id", name="uq_field_values_customer_field"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(
        Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    field_id = Column(
        Integer, ForeignKey("field_definitions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    value = Column(Text, nullable=True)                       # Untyped payload, typed on read

    customer = relationship("Customer", back_populates="values")
    field = relationship("FieldDefinition", back_populates="values")
