"""Canonical JSON-safe values for JSONB columns and audit snapshots."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import inspect as sa_inspect


def to_json_value(obj: Any) -> Any:
    """Convert value for canonical JSON representation."""
    if obj is None:
        return None
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, (int, float, Decimal)):
        return float(obj) if isinstance(obj, (float, Decimal)) else int(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {str(k): to_json_value(v) for k, v in sorted(obj.items())}
    if isinstance(obj, (list, tuple)):
        return [to_json_value(v) for v in obj]
    if isinstance(obj, str):
        return obj
    return str(obj)


def model_snapshot(instance: Any) -> dict[str, Any]:
    """Column values of an ORM instance as a JSON-safe dict."""
    mapper = sa_inspect(instance).mapper
    return {
        attr.key: to_json_value(getattr(instance, attr.key))
        for attr in mapper.column_attrs
    }
