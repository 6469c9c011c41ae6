"""Tax calculation request/response schemas."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from taxdesk.schemas.tax import Money

# Largest accepted subtotal (15 integer digits, 2 decimals)
MAX_SUBTOTAL = Decimal("999999999999999.99")


class CalculateTaxRequest(BaseModel):
    """POST /v1/taxes/calculate request."""

    amount: Decimal = Field(ge=0, le=MAX_SUBTOTAL)
    tax_ids: list[str] = Field(default_factory=list)


class TaxBreakdownItem(BaseModel):
    """One applied tax in evaluation order."""

    model_config = ConfigDict(populate_by_name=True)

    tax_id: str = Field(alias="taxId")
    tax_name: str = Field(alias="taxName")
    rate: Money
    amount: Money


class CalculationResult(BaseModel):
    """Subtotal, per-tax breakdown and grand total."""

    subtotal: Money
    taxes: list[TaxBreakdownItem] = Field(default_factory=list)
    total: Money
