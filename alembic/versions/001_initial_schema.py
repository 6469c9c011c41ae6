"""Initial schema - tenants, users, field_configurations, taxes, audit_logs.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("tenant_id", sa.UUID(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "users",
        sa.Column("user_id", sa.UUID(), primary_key=True),
        sa.Column("tenant_id", sa.UUID(), sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("scopes", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("api_key_hash", sa.String(255), unique=True, nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "field_configurations",
        sa.Column("field_config_id", sa.UUID(), primary_key=True),
        sa.Column("tenant_id", sa.UUID(), sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("entity", sa.String(50), nullable=False),
        sa.Column("field_id", sa.Text(), nullable=False),
        sa.Column("label", sa.Text(), nullable=False),
        sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_unique_constraint(
        "uq_field_config_tenant_entity_field",
        "field_configurations",
        ["tenant_id", "entity", "field_id"],
    )

    op.create_table(
        "taxes",
        sa.Column("tax_id", sa.UUID(), primary_key=True),
        sa.Column("tenant_id", sa.UUID(), sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("tax_code", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("rate", sa.Numeric(18, 6), nullable=False),
        sa.Column("rate_type", sa.String(20), nullable=False),
        sa.Column("applicable_on", sa.String(20), nullable=False, server_default="both"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("jurisdiction", sa.Text(), nullable=True),
        sa.Column("tax_category", sa.Text(), nullable=True),
        sa.Column("effective_from", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("effective_to", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("components", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_inclusive", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_compound", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("configuration", postgresql.JSONB(), nullable=True),
        sa.Column("custom_fields", postgresql.JSONB(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("updated_by", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_unique_constraint("uq_taxes_tenant_code", "taxes", ["tenant_id", "tax_code"])
    op.create_index("ix_taxes_tenant_status", "taxes", ["tenant_id", "status"])
    op.create_index("ix_taxes_applicable_on", "taxes", ["applicable_on"])
    op.create_index("ix_taxes_effective", "taxes", ["effective_from", "effective_to"])

    op.create_table(
        "audit_logs",
        sa.Column("audit_id", sa.UUID(), primary_key=True),
        sa.Column("tenant_id", sa.UUID(), sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("entity", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Text(), nullable=False),
        sa.Column("old_value", postgresql.JSONB(), nullable=True),
        sa.Column("new_value", postgresql.JSONB(), nullable=True),
        sa.Column("timestamp", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_tenant_entity", "audit_logs", ["tenant_id", "entity", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("taxes")
    op.drop_table("field_configurations")
    op.drop_table("users")
    op.drop_table("tenants")
