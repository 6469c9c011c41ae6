"""Tax definition model."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from taxdesk.database import Base


class Tax(Base):
    """Tax definitions - code unique per tenant."""

    __tablename__ = "taxes"

    tax_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("tenants.tenant_id"), nullable=False
    )
    tax_code: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    rate: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    rate_type: Mapped[str] = mapped_column(String(20), nullable=False)  # percentage|fixed
    applicable_on: Mapped[str] = mapped_column(
        String(20), nullable=False, default="both"
    )  # sales|purchase|both
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active"
    )  # active|inactive|archived
    jurisdiction: Mapped[str | None] = mapped_column(Text, nullable=True)
    tax_category: Mapped[str | None] = mapped_column(Text, nullable=True)
    effective_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    effective_to: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    components: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_inclusive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_compound: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    configuration: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    custom_fields: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_by: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    updated_by: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "tax_code", name="uq_taxes_tenant_code"),
    )
