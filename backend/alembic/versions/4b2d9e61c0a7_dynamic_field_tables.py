"""dynamic field tables

Revision ID: 4b2d9e61c0a7
Revises:
Create Date: 2026-10-16 09:12:44.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4b2d9e61c0a7'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    valid = op.create_table(
        "valid",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("create_time", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("change_time", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
    )
    op.bulk_insert(
        valid,
        [
            {"id": 1, "name": "valid"},
            {"id": 2, "name": "invalid"},
            {"id": 3, "name": "invalid-temporarily"},
        ],
    )
    op.create_table(
        "dynamic_field",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("label", sa.String(200), nullable=False),
        sa.Column("field_order", sa.Integer(), nullable=False),
        sa.Column("field_type", sa.String(200), nullable=False),
        sa.Column("object_type", sa.String(200), nullable=False),
        sa.Column("config", sa.Text()),
        sa.Column("valid_id", sa.Integer(), sa.ForeignKey("valid.id"), nullable=False),
        sa.Column("create_time", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("create_by", sa.Integer(), nullable=False),
        sa.Column("change_time", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("change_by", sa.Integer(), nullable=False),
    )
    op.create_index("ix_dynamic_field_order", "dynamic_field", ["field_order", "id"])
    op.create_table(
        "dynamic_field_value",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("field_id", sa.Integer(), sa.ForeignKey("dynamic_field.id"), nullable=False),
        sa.Column("object_id", sa.Integer(), nullable=False),
        sa.Column("value_text", sa.Text()),
        sa.Column("value_date", sa.Date()),
        sa.Column("value_int", sa.Integer()),
    )
    op.create_index(
        "ix_dynamic_field_value_field_object",
        "dynamic_field_value",
        ["field_id", "object_id"],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_dynamic_field_value_field_object", table_name="dynamic_field_value")
    op.drop_table("dynamic_field_value")
    op.drop_index("ix_dynamic_field_order", table_name="dynamic_field")
    op.drop_table("dynamic_field")
    op.drop_table("valid")
