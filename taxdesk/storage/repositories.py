"""Repository functions for taxes, field configurations and audit logs."""

import functools
import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import ValidationError
from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taxdesk.models import AuditLog, FieldConfiguration, Tax
from taxdesk.schemas.tax import ApplicableOn, TaxDefinition, TaxStatus
from taxdesk.utils.canonical import to_json_value

logger = logging.getLogger(__name__)

JSON_TAX_FIELDS = ("components", "configuration", "custom_fields")


class RepositoryError(Exception):
    """The backing store was unreachable or returned unusable data."""


def wrap_store_errors(func):
    """Re-raise store failures and unreadable rows as RepositoryError."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (SQLAlchemyError, ValidationError) as exc:
            logger.exception("Store failure in %s", func.__name__)
            raise RepositoryError(str(exc)) from exc

    return wrapper


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _valid_ids(ids: Sequence[str]) -> list[str]:
    """Drop ids that cannot be UUIDs - they can never match a row."""
    valid = []
    for raw in ids:
        try:
            valid.append(str(UUID(str(raw))))
        except ValueError:
            continue
    return valid


def _tax_values(data: dict[str, Any]) -> dict[str, Any]:
    """Enum members to their values, nested JSON fields to JSON-safe values."""
    values = {}
    for key, val in data.items():
        if key in JSON_TAX_FIELDS:
            values[key] = to_json_value(val)
        elif isinstance(val, Enum):
            values[key] = val.value
        else:
            values[key] = val
    return values


@wrap_store_errors
async def find_active_taxes_by_ids(
    db: AsyncSession, tenant_id: str, tax_ids: Sequence[str]
) -> list[TaxDefinition]:
    """
    Active taxes for tax_ids, in the order their ids first appear.
    Missing and non-active ids are silently absent.
    """
    ids = _valid_ids(tax_ids)
    if not ids:
        return []
    result = await db.execute(
        select(Tax).where(
            Tax.tenant_id == tenant_id,
            Tax.tax_id.in_(ids),
            Tax.status == TaxStatus.ACTIVE.value,
        )
    )
    rows = {str(t.tax_id): t for t in result.scalars().all()}
    ordered = []
    for tax_id in dict.fromkeys(ids):
        if tax_id in rows:
            ordered.append(TaxDefinition.model_validate(rows[tax_id]))
    return ordered


@wrap_store_errors
async def find_active_taxes(
    db: AsyncSession,
    tenant_id: str,
    applicable_on: ApplicableOn | None = None,
    at: datetime | None = None,
) -> list[Tax]:
    """
    Active taxes in effect at `at` (default now), sorted by priority ASC.
    applicable_on matches that value or BOTH.
    """
    at = at or utcnow()
    stmt = select(Tax).where(
        Tax.tenant_id == tenant_id,
        Tax.status == TaxStatus.ACTIVE.value,
        or_(Tax.effective_from.is_(None), Tax.effective_from <= at),
        or_(Tax.effective_to.is_(None), Tax.effective_to >= at),
    )
    if applicable_on:
        stmt = stmt.where(
            Tax.applicable_on.in_([ApplicableOn(applicable_on).value, ApplicableOn.BOTH.value])
        )
    result = await db.execute(stmt.order_by(Tax.priority.asc(), Tax.created_at.asc()))
    return list(result.scalars().all())


@wrap_store_errors
async def list_taxes(
    db: AsyncSession,
    tenant_id: str,
    status: TaxStatus | None = None,
    applicable_on: ApplicableOn | None = None,
) -> list[Tax]:
    """All taxes for a tenant, optionally filtered by status/applicable_on."""
    conditions = [Tax.tenant_id == tenant_id]
    if status:
        conditions.append(Tax.status == TaxStatus(status).value)
    if applicable_on:
        conditions.append(Tax.applicable_on == ApplicableOn(applicable_on).value)
    result = await db.execute(
        select(Tax).where(and_(*conditions)).order_by(Tax.priority.asc(), Tax.tax_code.asc())
    )
    return list(result.scalars().all())


@wrap_store_errors
async def get_tax_by_id(db: AsyncSession, tenant_id: str, tax_id: str) -> Tax | None:
    """Get tax by ID (tenant-scoped)."""
    if not _valid_ids([tax_id]):
        return None
    result = await db.execute(
        select(Tax).where(Tax.tax_id == str(tax_id), Tax.tenant_id == tenant_id)
    )
    return result.scalar_one_or_none()


@wrap_store_errors
async def get_tax_by_code(
    db: AsyncSession, tenant_id: str, tax_code: str, exclude_tax_id: str | None = None
) -> Tax | None:
    """Get tax by code (tenant-scoped), optionally ignoring one tax."""
    stmt = select(Tax).where(Tax.tenant_id == tenant_id, Tax.tax_code == tax_code)
    if exclude_tax_id:
        stmt = stmt.where(Tax.tax_id != exclude_tax_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


@wrap_store_errors
async def create_tax(
    db: AsyncSession, tenant_id: str, user_id: str, data: dict[str, Any]
) -> Tax:
    """Insert a tax definition."""
    now = utcnow()
    tax = Tax(
        tax_id=str(uuid4()),
        tenant_id=tenant_id,
        created_by=user_id,
        updated_by=user_id,
        created_at=now,
        updated_at=now,
        **_tax_values(data),
    )
    db.add(tax)
    await db.flush()
    return tax


@wrap_store_errors
async def update_tax(
    db: AsyncSession, tax: Tax, user_id: str, data: dict[str, Any]
) -> Tax:
    """Apply changed fields to a tax in place."""
    for key, val in _tax_values(data).items():
        setattr(tax, key, val)
    tax.updated_by = user_id
    tax.updated_at = utcnow()
    await db.flush()
    return tax


@wrap_store_errors
async def delete_tax(db: AsyncSession, tax: Tax) -> None:
    """Hard delete a tax."""
    await db.delete(tax)
    await db.flush()


@wrap_store_errors
async def get_field_configurations(
    db: AsyncSession, tenant_id: str, entity: str
) -> list[FieldConfiguration]:
    """Custom field rules a tenant configured for an entity."""
    result = await db.execute(
        select(FieldConfiguration).where(
            FieldConfiguration.tenant_id == tenant_id,
            FieldConfiguration.entity == entity,
        )
    )
    return list(result.scalars().all())


@wrap_store_errors
async def create_audit_log(
    db: AsyncSession,
    tenant_id: str,
    user_id: str,
    action: str,
    entity: str,
    entity_id: str,
    old_value: dict | None = None,
    new_value: dict | None = None,
) -> AuditLog:
    """Create audit record."""
    logger.info(
        "AUDIT tenant=%s user=%s action=%s entity=%s entity_id=%s",
        tenant_id, user_id, action, entity, entity_id,
    )
    entry = AuditLog(
        audit_id=str(uuid4()),
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=entity_id,
        old_value=old_value,
        new_value=new_value,
        timestamp=utcnow(),
    )
    db.add(entry)
    await db.flush()
    return entry
