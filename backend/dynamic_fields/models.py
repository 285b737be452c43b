"""ORM mapping for dynamic field definitions and their stored values."""

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base

# purpose: persisted schema of the dynamic field registry
# status: active
# related_docs: backend/alembic/versions/4b2d9e61c0a7_dynamic_field_tables.py


class Valid(Base):
    __tablename__ = "valid"
    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(200), unique=True, nullable=False)
    create_time = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    change_time = Column(DateTime, nullable=False, server_default=func.current_timestamp())


class DynamicField(Base):
    __tablename__ = "dynamic_field"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), unique=True, nullable=False)
    label = Column(String(200), nullable=False)
    field_order = Column(Integer, nullable=False)
    field_type = Column(String(200), nullable=False)
    object_type = Column(String(200), nullable=False)
    # serialized JSON document, see registry.dump_config
    config = Column(Text)
    valid_id = Column(Integer, ForeignKey("valid.id"), nullable=False)
    create_time = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    create_by = Column(Integer, nullable=False)
    change_time = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    change_by = Column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_dynamic_field_order", "field_order", "id"),
        {"sqlite_autoincrement": True},
    )


class DynamicFieldValue(Base):
    __tablename__ = "dynamic_field_value"
    id = Column(Integer, primary_key=True, autoincrement=True)
    field_id = Column(Integer, ForeignKey("dynamic_field.id"), nullable=False)
    object_id = Column(Integer, nullable=False)
    value_text = Column(Text)
    value_date = Column(Date)
    value_int = Column(Integer)

    __table_args__ = (
        Index("ix_dynamic_field_value_field_object", "field_id", "object_id"),
    )
