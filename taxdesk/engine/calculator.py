"""Tax calculator - resolves tax definitions against a subtotal."""

from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal, localcontext

from sqlalchemy.ext.asyncio import AsyncSession

from taxdesk.config import settings
from taxdesk.schemas.calculation import CalculationResult, TaxBreakdownItem
from taxdesk.schemas.tax import RateType, TaxDefinition
from taxdesk.storage.repositories import find_active_taxes_by_ids

HUNDRED = Decimal("100")
# Working precision for a calculation; well above any accepted subtotal
CALCULATION_PRECISION = 60


def _quantize(value: Decimal, decimal_places: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + decimal_places + 2)
        return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=ROUND_HALF_UP)


def _is_set(value: Decimal | None) -> bool:
    """Zero counts as unset, matching how constraints are stored."""
    return value is not None and value != 0


def calculate_taxes(
    subtotal: Decimal,
    taxes: Iterable[TaxDefinition],
    decimal_places: int = 2,
) -> CalculationResult:
    """
    Apply taxes in priority order (ASC, stable on ties).

    Exempt-threshold and min-amount constraints skip a tax entirely;
    max-amount clamps it. A compound tax adds its (clamped) amount to the
    base used by the taxes after it. Fixed taxes ignore the base.
    """
    if not isinstance(subtotal, Decimal):
        subtotal = Decimal(str(subtotal))
    with localcontext() as ctx:
        ctx.prec = CALCULATION_PRECISION
        return _apply_in_order(subtotal, taxes, decimal_places)


def _apply_in_order(
    subtotal: Decimal, taxes: Iterable[TaxDefinition], decimal_places: int
) -> CalculationResult:
    ordered = sorted(taxes, key=lambda t: t.priority)

    taxable_base = subtotal
    total_tax = Decimal("0")
    breakdown: list[TaxBreakdownItem] = []

    for tax in ordered:
        config = tax.configuration

        if config and _is_set(config.exempt_threshold) and subtotal < config.exempt_threshold:
            continue

        if tax.rate_type == RateType.PERCENTAGE:
            amount = taxable_base * tax.rate / HUNDRED
        else:
            amount = tax.rate
        amount = _quantize(amount, decimal_places)

        if config and _is_set(config.min_amount) and amount < config.min_amount:
            continue
        if config and _is_set(config.max_amount) and amount > config.max_amount:
            amount = config.max_amount

        breakdown.append(
            TaxBreakdownItem(
                tax_id=tax.tax_id,
                tax_name=tax.name,
                rate=tax.rate,
                amount=amount,
            )
        )
        total_tax += amount

        if tax.is_compound:
            taxable_base += amount

    return CalculationResult(
        subtotal=subtotal,
        taxes=breakdown,
        total=subtotal + total_tax,
    )


async def calculate_tax(
    db: AsyncSession,
    tenant_id: str,
    subtotal: Decimal,
    tax_ids: Sequence[str],
) -> CalculationResult:
    """
    Load the tenant's active taxes for tax_ids (one read) and calculate.
    Unknown or inactive ids are ignored; RepositoryError propagates.
    """
    if not tax_ids:
        return calculate_taxes(subtotal, [], settings.money_decimal_places)
    taxes = await find_active_taxes_by_ids(db, tenant_id, tax_ids)
    return calculate_taxes(subtotal, taxes, settings.money_decimal_places)
