"""Shared fixtures for API tests - no database, dependencies overridden."""

import pytest
from fastapi.testclient import TestClient

from taxdesk.auth.middleware import Principal, Role, get_principal_from_bearer
from taxdesk.database import get_db
from taxdesk.main import app

TENANT_ID = "22222222-2222-2222-2222-222222222222"
USER_ID = "33333333-3333-3333-3333-333333333333"


async def _no_db():
    yield None


@pytest.fixture
def principal():
    """Mutable holder so tests can switch role/scopes before requests."""
    return {"role": Role.ADMIN, "scopes": frozenset({"taxes"})}


@pytest.fixture
def client(principal):
    async def _principal():
        return Principal(
            user_id=USER_ID,
            tenant_id=TENANT_ID,
            role=principal["role"],
            scopes=principal["scopes"],
        )

    app.dependency_overrides[get_db] = _no_db
    app.dependency_overrides[get_principal_from_bearer] = _principal
    yield TestClient(app)
    app.dependency_overrides.clear()
