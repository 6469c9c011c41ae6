"""Tax endpoints - CRUD, lifecycle, lookups and calculation."""

import logging
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from taxdesk.auth.middleware import AdminDep, Principal, ReaderDep, WriterDep
from taxdesk.database import get_db
from taxdesk.engine.calculator import calculate_tax
from taxdesk.models import Tax
from taxdesk.schemas.calculation import MAX_SUBTOTAL, CalculateTaxRequest, CalculationResult
from taxdesk.schemas.tax import (
    ApplicableOn,
    CreateTaxRequest,
    RateType,
    TaxDefinition,
    TaxStatus,
    UpdateTaxRequest,
    check_effective_range,
    check_percentage_rate,
)
from taxdesk.storage.repositories import (
    create_audit_log,
    create_tax,
    delete_tax,
    find_active_taxes,
    find_active_taxes_by_ids,
    get_field_configurations,
    get_tax_by_code,
    get_tax_by_id,
    list_taxes,
    update_tax,
)
from taxdesk.utils.canonical import model_snapshot

logger = logging.getLogger(__name__)

router = APIRouter()

ENTITY = "tax"

DbDep = Annotated[AsyncSession, Depends(get_db)]


def _split_ids(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


async def _get_tax_or_404(db: AsyncSession, tenant_id: str, tax_id: UUID) -> Tax:
    tax = await get_tax_by_id(db, tenant_id, str(tax_id))
    if not tax:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tax with ID {tax_id} not found.",
        )
    return tax


async def _validate_custom_fields(
    db: AsyncSession, tenant_id: str, custom_fields: dict | None
) -> None:
    """Every field the tenant marked required must be present and non-empty."""
    for field_config in await get_field_configurations(db, tenant_id, ENTITY):
        if field_config.required and not (custom_fields or {}).get(field_config.field_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{field_config.label} is required.",
            )


async def _set_status(
    db: AsyncSession, principal: Principal, tax_id: UUID, new_status: TaxStatus, action: str
) -> TaxDefinition:
    tax = await _get_tax_or_404(db, principal.tenant_id, tax_id)
    old_status = tax.status
    tax = await update_tax(db, tax, principal.user_id, {"status": new_status})
    await create_audit_log(
        db,
        tenant_id=principal.tenant_id,
        user_id=principal.user_id,
        action=action,
        entity=ENTITY,
        entity_id=str(tax.tax_id),
        old_value={"status": old_status},
        new_value={"status": new_status.value},
    )
    return TaxDefinition.model_validate(tax)


@router.post("/taxes", response_model=TaxDefinition, status_code=status.HTTP_201_CREATED)
async def create_tax_definition(
    body: CreateTaxRequest,
    principal: WriterDep,
    db: DbDep,
):
    """Create a new tax definition."""
    await _validate_custom_fields(db, principal.tenant_id, body.custom_fields)

    if await get_tax_by_code(db, principal.tenant_id, body.tax_code):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Tax code {body.tax_code} already exists.",
        )

    tax = await create_tax(db, principal.tenant_id, principal.user_id, body.model_dump())
    await create_audit_log(
        db,
        tenant_id=principal.tenant_id,
        user_id=principal.user_id,
        action="create",
        entity=ENTITY,
        entity_id=str(tax.tax_id),
        new_value=model_snapshot(tax),
    )
    return TaxDefinition.model_validate(tax)


@router.get("/taxes", response_model=list[TaxDefinition])
async def list_tax_definitions(
    principal: ReaderDep,
    db: DbDep,
    status_filter: Annotated[TaxStatus | None, Query(alias="status")] = None,
    applicable_on: ApplicableOn | None = None,
):
    """List the tenant's taxes."""
    taxes = await list_taxes(db, principal.tenant_id, status_filter, applicable_on)
    return [TaxDefinition.model_validate(t) for t in taxes]


@router.get("/taxes/code/{tax_code}", response_model=TaxDefinition)
async def get_tax_definition_by_code(tax_code: str, principal: ReaderDep, db: DbDep):
    """Get a tax by its code."""
    tax = await get_tax_by_code(db, principal.tenant_id, tax_code)
    if not tax:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tax with code {tax_code} not found.",
        )
    return TaxDefinition.model_validate(tax)


@router.get("/taxes/by-ids", response_model=list[TaxDefinition])
async def get_tax_definitions_by_ids(
    principal: ReaderDep,
    db: DbDep,
    ids: Annotated[str, Query(description="Comma-separated tax IDs")],
):
    """Active taxes among the given ids; unknown ids are ignored."""
    return await find_active_taxes_by_ids(db, principal.tenant_id, _split_ids(ids))


@router.get("/taxes/active/list", response_model=list[TaxDefinition])
async def get_active_tax_definitions(
    principal: ReaderDep,
    db: DbDep,
    applicable_on: ApplicableOn | None = None,
):
    """Active taxes currently in effect, by priority."""
    taxes = await find_active_taxes(db, principal.tenant_id, applicable_on)
    return [TaxDefinition.model_validate(t) for t in taxes]


@router.get("/taxes/calculate/amount", response_model=CalculationResult)
async def calculate_tax_amount(
    principal: ReaderDep,
    db: DbDep,
    amount: Annotated[Decimal, Query(ge=0, le=MAX_SUBTOTAL, description="Subtotal amount")],
    tax_ids: Annotated[str, Query(description="Comma-separated tax IDs")] = "",
):
    """Calculate taxes for a subtotal and a set of tax ids."""
    return await calculate_tax(db, principal.tenant_id, amount, _split_ids(tax_ids))


@router.post("/taxes/calculate", response_model=CalculationResult)
async def calculate_tax_body(body: CalculateTaxRequest, principal: ReaderDep, db: DbDep):
    """Calculate taxes (JSON body variant)."""
    return await calculate_tax(db, principal.tenant_id, body.amount, body.tax_ids)


@router.get("/taxes/{tax_id}", response_model=TaxDefinition)
async def get_tax_definition(tax_id: UUID, principal: ReaderDep, db: DbDep):
    """Get a tax by ID."""
    return TaxDefinition.model_validate(await _get_tax_or_404(db, principal.tenant_id, tax_id))


@router.patch("/taxes/{tax_id}", response_model=TaxDefinition)
async def update_tax_definition(
    tax_id: UUID,
    body: UpdateTaxRequest,
    principal: WriterDep,
    db: DbDep,
):
    """Update a tax definition."""
    tax = await _get_tax_or_404(db, principal.tenant_id, tax_id)
    changes = body.model_dump(exclude_unset=True)

    if body.tax_code and body.tax_code != tax.tax_code:
        if await get_tax_by_code(db, principal.tenant_id, body.tax_code, exclude_tax_id=str(tax.tax_id)):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Tax code {body.tax_code} already exists.",
            )

    try:
        check_percentage_rate(
            body.rate_type or RateType(tax.rate_type),
            body.rate if body.rate is not None else tax.rate,
        )
        check_effective_range(
            changes["effective_from"] if "effective_from" in changes else tax.effective_from,
            changes["effective_to"] if "effective_to" in changes else tax.effective_to,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    old_value = model_snapshot(tax)
    tax = await update_tax(db, tax, principal.user_id, changes)
    await create_audit_log(
        db,
        tenant_id=principal.tenant_id,
        user_id=principal.user_id,
        action="update",
        entity=ENTITY,
        entity_id=str(tax.tax_id),
        old_value=old_value,
        new_value=model_snapshot(tax),
    )
    return TaxDefinition.model_validate(tax)


@router.patch("/taxes/{tax_id}/archive", response_model=TaxDefinition)
async def archive_tax_definition(tax_id: UUID, principal: WriterDep, db: DbDep):
    """Retire a tax (status -> archived)."""
    return await _set_status(db, principal, tax_id, TaxStatus.ARCHIVED, "archive")


@router.patch("/taxes/{tax_id}/activate", response_model=TaxDefinition)
async def activate_tax_definition(tax_id: UUID, principal: WriterDep, db: DbDep):
    """Reactivate a tax (status -> active)."""
    return await _set_status(db, principal, tax_id, TaxStatus.ACTIVE, "activate")


@router.delete("/taxes/{tax_id}")
async def delete_tax_definition(tax_id: UUID, principal: AdminDep, db: DbDep):
    """Hard delete a tax."""
    tax = await _get_tax_or_404(db, principal.tenant_id, tax_id)
    old_value = model_snapshot(tax)
    await delete_tax(db, tax)
    await create_audit_log(
        db,
        tenant_id=principal.tenant_id,
        user_id=principal.user_id,
        action="delete",
        entity=ENTITY,
        entity_id=str(tax_id),
        old_value=old_value,
    )
    logger.info("Deleted tax %s for tenant %s", tax_id, principal.tenant_id)
    return {"id": str(tax_id)}
