"""API tests for /v1/taxes with repository functions stubbed."""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from taxdesk.api import taxes as taxes_api
from taxdesk.auth.middleware import Role
from taxdesk.engine import calculator
from taxdesk.models import Tax
from taxdesk.schemas.tax import ApplicableOn, TaxDefinition, TaxStatus
from taxdesk.storage import repositories
from taxdesk.storage.repositories import RepositoryError
from tests.conftest import TENANT_ID, USER_ID

TAX_ID = "11111111-1111-1111-1111-111111111111"
NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_row(**overrides) -> Tax:
    values = {
        "tax_id": TAX_ID,
        "tenant_id": TENANT_ID,
        "tax_code": "GST-18",
        "name": "GST 18%",
        "rate": Decimal("18"),
        "rate_type": "percentage",
        "applicable_on": "both",
        "status": "active",
        "components": [],
        "priority": 1,
        "is_inclusive": False,
        "is_compound": False,
        "created_by": USER_ID,
        "updated_by": USER_ID,
        "created_at": NOW,
        "updated_at": NOW,
    }
    values.update(overrides)
    return Tax(**values)


@pytest.fixture
def audit(monkeypatch):
    """Collect audit records instead of writing them."""
    records = []

    async def fake_audit(db, **kwargs):
        records.append(kwargs)

    monkeypatch.setattr(taxes_api, "create_audit_log", fake_audit)
    return records


@pytest.fixture
def stored(monkeypatch):
    """A single stored tax reachable by id."""
    row = make_row()

    async def fake_get(db, tenant_id, tax_id):
        return row if tenant_id == TENANT_ID and tax_id == TAX_ID else None

    async def fake_update(db, tax, user_id, data):
        for key, val in repositories._tax_values(data).items():
            setattr(tax, key, val)
        tax.updated_by = user_id
        return tax

    monkeypatch.setattr(taxes_api, "get_tax_by_id", fake_get)
    monkeypatch.setattr(taxes_api, "update_tax", fake_update)
    return row


def stub_active_taxes(monkeypatch, taxes):
    async def fake_find(db, tenant_id, tax_ids):
        return [t for t in taxes if t.tax_id in tax_ids]

    monkeypatch.setattr(calculator, "find_active_taxes_by_ids", fake_find)


def test_calculate_amount_endpoint(client, monkeypatch):
    """GET calculate returns JSON numbers and camelCase breakdown keys."""
    gst = TaxDefinition.model_validate(make_row())
    stub_active_taxes(monkeypatch, [gst])
    response = client.get(
        "/v1/taxes/calculate/amount",
        params={"amount": "1000", "tax_ids": f"{TAX_ID}, unknown"},
    )
    assert response.status_code == 200
    assert response.json() == {
        "subtotal": 1000.0,
        "taxes": [{"taxId": TAX_ID, "taxName": "GST 18%", "rate": 18.0, "amount": 180.0}],
        "total": 1180.0,
    }


def test_calculate_body_endpoint_with_no_ids(client):
    response = client.post("/v1/taxes/calculate", json={"amount": 250.5, "tax_ids": []})
    assert response.status_code == 200
    assert response.json() == {"subtotal": 250.5, "taxes": [], "total": 250.5}


def test_calculate_rejects_negative_amount(client):
    response = client.get("/v1/taxes/calculate/amount", params={"amount": "-1"})
    assert response.status_code == 422


def test_repository_error_returns_503(client, monkeypatch):
    async def failing_find(db, tenant_id, tax_ids):
        raise RepositoryError("connection refused")

    monkeypatch.setattr(calculator, "find_active_taxes_by_ids", failing_find)
    response = client.get(
        "/v1/taxes/calculate/amount", params={"amount": "10", "tax_ids": TAX_ID}
    )
    assert response.status_code == 503
    assert response.json() == {"detail": "Tax store unavailable"}


def test_create_tax(client, monkeypatch, audit):
    async def no_configs(db, tenant_id, entity):
        return []

    async def no_existing(db, tenant_id, tax_code, exclude_tax_id=None):
        return None

    async def fake_create(db, tenant_id, user_id, data):
        return make_row(**repositories._tax_values(data))

    monkeypatch.setattr(taxes_api, "get_field_configurations", no_configs)
    monkeypatch.setattr(taxes_api, "get_tax_by_code", no_existing)
    monkeypatch.setattr(taxes_api, "create_tax", fake_create)

    response = client.post(
        "/v1/taxes",
        json={
            "tax_code": "VAT-5",
            "name": "VAT 5%",
            "rate": 5,
            "rate_type": "percentage",
            "is_compound": True,
            "configuration": {"max_amount": 100},
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["tax_code"] == "VAT-5"
    assert body["rate"] == 5.0
    assert body["is_compound"] is True
    assert body["configuration"]["max_amount"] == 100.0
    assert [a["action"] for a in audit] == ["create"]
    assert audit[0]["tenant_id"] == TENANT_ID
    assert audit[0]["user_id"] == USER_ID
    assert audit[0]["new_value"]["tax_code"] == "VAT-5"


def test_create_duplicate_code_rejected(client, monkeypatch, audit):
    async def no_configs(db, tenant_id, entity):
        return []

    async def existing(db, tenant_id, tax_code, exclude_tax_id=None):
        return make_row()

    monkeypatch.setattr(taxes_api, "get_field_configurations", no_configs)
    monkeypatch.setattr(taxes_api, "get_tax_by_code", existing)
    response = client.post(
        "/v1/taxes",
        json={"tax_code": "GST-18", "name": "GST", "rate": 18, "rate_type": "percentage"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Tax code GST-18 already exists."
    assert audit == []


def test_create_requires_configured_custom_fields(client, monkeypatch):
    async def configs(db, tenant_id, entity):
        return [SimpleNamespace(field_id="reporting_code", label="Reporting Code", required=True)]

    monkeypatch.setattr(taxes_api, "get_field_configurations", configs)
    response = client.post(
        "/v1/taxes",
        json={"tax_code": "X", "name": "X", "rate": 1, "rate_type": "fixed", "custom_fields": {}},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Reporting Code is required."


def test_create_percentage_over_100_is_422(client):
    response = client.post(
        "/v1/taxes",
        json={"tax_code": "X", "name": "X", "rate": 120, "rate_type": "percentage"},
    )
    assert response.status_code == 422


def test_viewer_cannot_create(client, principal):
    principal["role"] = Role.VIEWER
    response = client.post(
        "/v1/taxes",
        json={"tax_code": "X", "name": "X", "rate": 1, "rate_type": "fixed"},
    )
    assert response.status_code == 403


def test_missing_scope_forbidden(client, principal):
    principal["scopes"] = frozenset({"vendors"})
    response = client.get("/v1/taxes/calculate/amount", params={"amount": "1"})
    assert response.status_code == 403
    assert response.json()["detail"] == "Missing scope: taxes"


def test_system_admin_scope_grants_access(client, principal):
    principal["scopes"] = frozenset({"system-admin"})
    response = client.get("/v1/taxes/calculate/amount", params={"amount": "1"})
    assert response.status_code == 200


def test_get_tax_by_id(client, stored):
    response = client.get(f"/v1/taxes/{TAX_ID}")
    assert response.status_code == 200
    assert response.json()["tax_id"] == TAX_ID


def test_get_unknown_tax_is_404(client, stored):
    response = client.get("/v1/taxes/44444444-4444-4444-4444-444444444444")
    assert response.status_code == 404


def test_get_malformed_tax_id_is_422(client, stored):
    response = client.get("/v1/taxes/not-a-uuid")
    assert response.status_code == 422


def test_archive_and_activate(client, stored, audit):
    response = client.patch(f"/v1/taxes/{TAX_ID}/archive")
    assert response.status_code == 200
    assert response.json()["status"] == "archived"

    response = client.patch(f"/v1/taxes/{TAX_ID}/activate")
    assert response.status_code == 200
    assert response.json()["status"] == "active"

    assert [(a["action"], a["old_value"], a["new_value"]) for a in audit] == [
        ("archive", {"status": "active"}, {"status": "archived"}),
        ("activate", {"status": "archived"}, {"status": "active"}),
    ]


def test_update_rejects_inverted_effective_range(client, stored, audit):
    stored.effective_to = datetime(2024, 6, 1, tzinfo=timezone.utc)
    response = client.patch(
        f"/v1/taxes/{TAX_ID}", json={"effective_from": "2024-12-01T00:00:00Z"}
    )
    assert response.status_code == 400
    assert audit == []


def test_update_rejects_rate_over_100_for_percentage_tax(client, stored):
    response = client.patch(f"/v1/taxes/{TAX_ID}", json={"rate": 150})
    assert response.status_code == 400


def test_update_applies_changes(client, stored, audit):
    response = client.patch(f"/v1/taxes/{TAX_ID}", json={"name": "GST (revised)", "priority": 4})
    assert response.status_code == 200
    assert response.json()["name"] == "GST (revised)"
    assert response.json()["priority"] == 4
    assert audit[0]["action"] == "update"
    assert audit[0]["old_value"]["name"] == "GST 18%"
    assert audit[0]["new_value"]["name"] == "GST (revised)"


def test_delete_requires_admin(client, principal, stored):
    principal["role"] = Role.MANAGER
    response = client.delete(f"/v1/taxes/{TAX_ID}")
    assert response.status_code == 403


def test_delete_tax(client, monkeypatch, stored, audit):
    deleted = []

    async def fake_delete(db, tax):
        deleted.append(tax)

    monkeypatch.setattr(taxes_api, "delete_tax", fake_delete)
    response = client.delete(f"/v1/taxes/{TAX_ID}")
    assert response.status_code == 200
    assert response.json() == {"id": TAX_ID}
    assert deleted == [stored]
    assert audit[0]["action"] == "delete"


@pytest.fixture
def creatable(monkeypatch):
    """No field rules, no existing code, create echoes the submitted values."""

    async def no_configs(db, tenant_id, entity):
        return []

    async def no_existing(db, tenant_id, tax_code, exclude_tax_id=None):
        return None

    async def fake_create(db, tenant_id, user_id, data):
        return make_row(**repositories._tax_values(data))

    monkeypatch.setattr(taxes_api, "get_field_configurations", no_configs)
    monkeypatch.setattr(taxes_api, "get_tax_by_code", no_existing)
    monkeypatch.setattr(taxes_api, "create_tax", fake_create)


def test_create_accepts_naive_dates_as_utc(client, creatable, audit):
    """A naive effective_from compares against an aware effective_to."""
    response = client.post(
        "/v1/taxes",
        json={
            "tax_code": "VAT-5",
            "name": "VAT 5%",
            "rate": 5,
            "rate_type": "percentage",
            "effective_from": "2024-01-01T00:00:00",
            "effective_to": "2025-01-01T00:00:00Z",
        },
    )
    assert response.status_code == 201
    assert response.json()["effective_from"].startswith("2024-01-01T00:00:00")


def test_create_rejects_naive_from_after_aware_to(client, creatable):
    response = client.post(
        "/v1/taxes",
        json={
            "tax_code": "VAT-5",
            "name": "VAT 5%",
            "rate": 5,
            "rate_type": "percentage",
            "effective_from": "2026-01-01T00:00:00",
            "effective_to": "2025-01-01T00:00:00Z",
        },
    )
    assert response.status_code == 422


def test_update_naive_date_checked_against_stored_aware_date(client, stored, audit):
    stored.effective_from = datetime(2024, 6, 1, tzinfo=timezone.utc)

    response = client.patch(f"/v1/taxes/{TAX_ID}", json={"effective_to": "2024-01-01T00:00:00"})
    assert response.status_code == 400
    assert audit == []

    response = client.patch(f"/v1/taxes/{TAX_ID}", json={"effective_to": "2025-01-01T00:00:00"})
    assert response.status_code == 200
    assert stored.effective_to == datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_update_clearing_date_skips_old_value(client, stored, audit):
    """Explicit null clears effective_to, so only the new from is checked."""
    stored.effective_to = datetime(2024, 6, 1, tzinfo=timezone.utc)
    response = client.patch(
        f"/v1/taxes/{TAX_ID}",
        json={"effective_from": "2024-12-01T00:00:00Z", "effective_to": None},
    )
    assert response.status_code == 200
    assert response.json()["effective_to"] is None
    assert stored.effective_to is None


@pytest.mark.parametrize(
    "payload",
    [
        {"tax_code": None},
        {"rate_type": None},
        {"name": None, "rate": None},
        {"priority": None},
        {"is_compound": None},
    ],
)
def test_update_rejects_null_for_required_fields(client, stored, audit, payload):
    response = client.patch(f"/v1/taxes/{TAX_ID}", json=payload)
    assert response.status_code == 422
    assert audit == []
    assert stored.tax_code == "GST-18"


def test_update_allows_null_for_optional_fields(client, stored, audit):
    stored.description = "old"
    response = client.patch(f"/v1/taxes/{TAX_ID}", json={"description": None})
    assert response.status_code == 200
    assert response.json()["description"] is None


def test_calculate_rejects_oversized_amount(client):
    response = client.get(
        "/v1/taxes/calculate/amount",
        params={"amount": "1000000000000000000000000000", "tax_ids": TAX_ID},
    )
    assert response.status_code == 422

    response = client.post(
        "/v1/taxes/calculate", json={"amount": "1000000000000000000000000000", "tax_ids": []}
    )
    assert response.status_code == 422


def test_calculate_accepts_largest_amount(client, monkeypatch):
    stub_active_taxes(monkeypatch, [TaxDefinition.model_validate(make_row())])
    response = client.get(
        "/v1/taxes/calculate/amount",
        params={"amount": "999999999999999.99", "tax_ids": TAX_ID},
    )
    assert response.status_code == 200
    assert response.json()["taxes"][0]["amount"] == pytest.approx(180000000000000.0)


def test_get_tax_by_code(client, monkeypatch):
    seen = []

    async def fake_by_code(db, tenant_id, tax_code, exclude_tax_id=None):
        seen.append((tenant_id, tax_code))
        return make_row() if tax_code == "GST-18" else None

    monkeypatch.setattr(taxes_api, "get_tax_by_code", fake_by_code)

    response = client.get("/v1/taxes/code/GST-18")
    assert response.status_code == 200
    assert response.json()["tax_id"] == TAX_ID

    response = client.get("/v1/taxes/code/VAT-99")
    assert response.status_code == 404
    assert response.json()["detail"] == "Tax with code VAT-99 not found."
    assert seen == [(TENANT_ID, "GST-18"), (TENANT_ID, "VAT-99")]


def test_get_taxes_by_ids(client, monkeypatch):
    seen = []

    async def fake_find(db, tenant_id, tax_ids):
        seen.append((tenant_id, tax_ids))
        return [TaxDefinition.model_validate(make_row())]

    monkeypatch.setattr(taxes_api, "find_active_taxes_by_ids", fake_find)
    response = client.get("/v1/taxes/by-ids", params={"ids": f" {TAX_ID} ,,other"})
    assert response.status_code == 200
    assert [t["tax_id"] for t in response.json()] == [TAX_ID]
    assert seen == [(TENANT_ID, [TAX_ID, "other"])]


def test_active_list_passes_applicability(client, monkeypatch):
    seen = []

    async def fake_active(db, tenant_id, applicable_on=None, at=None):
        seen.append((tenant_id, applicable_on))
        return [make_row(priority=0), make_row(tax_code="CESS", priority=2)]

    monkeypatch.setattr(taxes_api, "find_active_taxes", fake_active)

    response = client.get("/v1/taxes/active/list", params={"applicable_on": "sales"})
    assert response.status_code == 200
    assert [t["tax_code"] for t in response.json()] == ["GST-18", "CESS"]

    assert client.get("/v1/taxes/active/list").status_code == 200
    assert client.get("/v1/taxes/active/list", params={"applicable_on": "rental"}).status_code == 422
    assert seen == [(TENANT_ID, ApplicableOn.SALES), (TENANT_ID, None)]


def test_list_taxes_passes_filters(client, monkeypatch):
    seen = []

    async def fake_list(db, tenant_id, status=None, applicable_on=None):
        seen.append((tenant_id, status, applicable_on))
        return [make_row(status="archived")]

    monkeypatch.setattr(taxes_api, "list_taxes", fake_list)
    response = client.get("/v1/taxes", params={"status": "archived", "applicable_on": "purchase"})
    assert response.status_code == 200
    assert response.json()[0]["status"] == "archived"
    assert seen == [(TENANT_ID, TaxStatus.ARCHIVED, ApplicableOn.PURCHASE)]
