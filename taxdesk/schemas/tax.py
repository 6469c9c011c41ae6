"""Tax definition schemas - write-time validation and the engine's read model."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator, model_validator


class RateType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ApplicableOn(str, Enum):
    SALES = "sales"
    PURCHASE = "purchase"
    BOTH = "both"


class TaxStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


MAX_PERCENTAGE_RATE = Decimal("100")

# Decimal internally, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class TaxComponent(BaseModel):
    """Informational sub-part of a tax (e.g. CGST + SGST)."""

    name: str
    rate: Money = Field(ge=0)
    description: str | None = None


class TaxConfiguration(BaseModel):
    """Optional constraints applied during calculation."""

    min_amount: Money | None = Field(default=None, ge=0)
    max_amount: Money | None = Field(default=None, ge=0)
    exempt_threshold: Money | None = Field(default=None, ge=0)
    reverse_charge: bool = False


class TaxDefinition(BaseModel):
    """Persisted tax as read by the engine and returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    tax_id: str
    tax_code: str
    name: str
    description: str | None = None
    rate: Money
    rate_type: RateType
    applicable_on: ApplicableOn = ApplicableOn.BOTH
    status: TaxStatus = TaxStatus.ACTIVE
    jurisdiction: str | None = None
    tax_category: str | None = None
    effective_from: datetime | None = None
    effective_to: datetime | None = None
    components: list[TaxComponent] = Field(default_factory=list)
    priority: int = 0
    is_inclusive: bool = False
    is_compound: bool = False
    configuration: TaxConfiguration | None = None
    custom_fields: dict[str, Any] | None = None
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


def _blank_to_none(v: Any) -> Any:
    return None if v == "" else v


def as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes are taken as UTC so they compare with stored timestamptz."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def check_percentage_rate(rate_type: RateType | None, rate: Decimal | None) -> None:
    """Raise ValueError when a percentage rate exceeds 100."""
    if rate_type == RateType.PERCENTAGE and rate is not None and rate > MAX_PERCENTAGE_RATE:
        raise ValueError("Percentage rate cannot exceed 100%.")


def check_effective_range(
    effective_from: datetime | None, effective_to: datetime | None
) -> None:
    """Raise ValueError when effective_from is after effective_to."""
    effective_from, effective_to = as_utc(effective_from), as_utc(effective_to)
    if effective_from and effective_to and effective_from > effective_to:
        raise ValueError("Effective from date must be before effective to date.")


class CreateTaxRequest(BaseModel):
    """POST /v1/taxes request."""

    tax_code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str | None = None
    rate: Decimal = Field(ge=0)
    rate_type: RateType
    applicable_on: ApplicableOn = ApplicableOn.BOTH
    status: TaxStatus = TaxStatus.ACTIVE
    jurisdiction: str | None = None
    tax_category: str | None = None
    effective_from: datetime | None = None
    effective_to: datetime | None = None
    components: list[TaxComponent] = Field(default_factory=list)
    priority: int = 0
    is_inclusive: bool = False
    is_compound: bool = False
    configuration: TaxConfiguration | None = None
    custom_fields: dict[str, Any] | None = None

    @field_validator("effective_from", "effective_to", mode="before")
    @classmethod
    def blank_dates_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("effective_from", "effective_to", mode="after")
    @classmethod
    def dates_to_utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)

    @model_validator(mode="after")
    def validate_rate_and_dates(self) -> "CreateTaxRequest":
        check_percentage_rate(self.rate_type, self.rate)
        check_effective_range(self.effective_from, self.effective_to)
        return self


class UpdateTaxRequest(BaseModel):
    """PATCH /v1/taxes/{tax_id} request - only sent fields are applied."""

    tax_code: str | None = Field(default=None, min_length=1)
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    rate: Decimal | None = Field(default=None, ge=0)
    rate_type: RateType | None = None
    applicable_on: ApplicableOn | None = None
    status: TaxStatus | None = None
    jurisdiction: str | None = None
    tax_category: str | None = None
    effective_from: datetime | None = None
    effective_to: datetime | None = None
    components: list[TaxComponent] | None = None
    priority: int | None = None
    is_inclusive: bool | None = None
    is_compound: bool | None = None
    configuration: TaxConfiguration | None = None
    custom_fields: dict[str, Any] | None = None

    @field_validator("effective_from", "effective_to", mode="before")
    @classmethod
    def blank_dates_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("effective_from", "effective_to", mode="after")
    @classmethod
    def dates_to_utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)

    @model_validator(mode="after")
    def validate_rate(self) -> "UpdateTaxRequest":
        check_percentage_rate(self.rate_type, self.rate)
        return self

    @field_validator(
        "tax_code",
        "name",
        "rate",
        "rate_type",
        "applicable_on",
        "status",
        "components",
        "priority",
        "is_inclusive",
        "is_compound",
        mode="before",
    )
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        """These columns are NOT NULL; omit the field to leave it unchanged."""
        if v is None:
            raise ValueError("may not be null")
        return v
