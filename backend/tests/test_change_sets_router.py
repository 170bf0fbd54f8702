"""
Tests for the change-set HTTP endpoints. The database session is replaced
with a mock via dependency_overrides; change sets are loaded by patching
the router's lookup helper.
"""

import io

import pytest
from unittest.mock import patch, AsyncMock, MagicMock
from httpx import AsyncClient, ASGITransport
from openpyxl import load_workbook

from ppc_dashboard.database import get_db
from ppc_dashboard.main import app
from ppc_dashboard.models import ChangeSetStatus
from ppc_dashboard.services.bulksheet_service import SHEET_NAME
from ppc_dashboard.services.change_set_service import create_change_set

CHANGE_SET_ID = "6f1c1f5e-2d7b-4c4e-9a55-5f7d2f0e8c11"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db_session():
    session = MagicMock()
    session.flush = AsyncMock()
    session.delete = AsyncMock()
    session.execute = AsyncMock()

    async def _override():
        yield session

    app.dependency_overrides[get_db] = _override
    yield session
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def _draft(name="Bid cleanup"):
    return create_change_set([
        {
            "entity_type": "KEYWORD", "entity_id": "k1", "entity_name": "bamboo sheets queen",
            "changes": {"bid": 1.5}, "amazon_keyword_id": "333", "match_type": "EXACT",
        },
        {
            "entity_type": "CAMPAIGN", "entity_id": "c1", "entity_name": "SP - Bamboo",
            "changes": {"budget": 40.0}, "amazon_campaign_id": "111",
        },
    ], name=name)


def _patch_lookup(change_set):
    return patch(
        "ppc_dashboard.routers.change_sets._get_change_set",
        new_callable=AsyncMock,
        return_value=change_set,
    )


@pytest.mark.anyio
async def test_create_returns_draft(client, db_session):
    response = await client.post("/api/change-sets", json={
        "name": "Bid cleanup",
        "items": [{
            "entityType": "KEYWORD",
            "entityId": "k1",
            "entityName": "bamboo sheets",
            "changes": {"bid": 0.9, "comment": "dropped"},
            "matchType": "EXACT",
        }],
    })
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "DRAFT"
    assert data["items"][0]["changes"] == {"bid": 0.9}
    assert data["items"][0]["match_type"] == "EXACT"
    assert db_session.add.call_count == 2  # change set + activity log


@pytest.mark.anyio
async def test_create_with_invalid_values_lists_every_error(client, db_session):
    response = await client.post("/api/change-sets", json={
        "items": [
            {"entityType": "KEYWORD", "entityId": "k1", "entityName": "a", "changes": {"bid": 0.01}},
            {"entityType": "CAMPAIGN", "entityId": "c1", "entityName": "b", "changes": {"tosModifier": 901}},
        ],
    })
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["error"] == "Validation failed"
    assert [(e["itemIndex"], e["field"]) for e in detail["validation_errors"]] == [
        (0, "bid"), (1, "tosModifier"),
    ]
    db_session.add.assert_not_called()


@pytest.mark.anyio
async def test_create_with_no_items_is_malformed(client, db_session):
    response = await client.post("/api/change-sets", json={"items": []})
    assert response.status_code == 400
    assert "at least one item" in response.json()["detail"]


@pytest.mark.anyio
async def test_get_with_bad_uuid(client, db_session):
    response = await client.get("/api/change-sets/not-a-uuid")
    assert response.status_code == 400


@pytest.mark.anyio
async def test_export_downloads_bulksheet(client, db_session):
    cs = _draft()
    with _patch_lookup(cs):
        response = await client.post(f"/api/change-sets/{CHANGE_SET_ID}/export")

    assert response.status_code == 200
    assert response.headers["content-disposition"] == 'attachment; filename="change-set-Bid_cleanup.xlsx"'
    ws = load_workbook(io.BytesIO(response.content))[SHEET_NAME]
    entities = [row[1] for row in ws.iter_rows(min_row=2, values_only=True)]
    assert entities == ["Keyword", "Campaign"]
    assert cs.status == ChangeSetStatus.EXPORTED.value


@pytest.mark.anyio
async def test_apply_success(client, db_session):
    cs = _draft()
    store = MagicMock()
    store.update_keyword = AsyncMock()
    store.update_campaign = AsyncMock()
    with _patch_lookup(cs), patch(
        "ppc_dashboard.routers.change_sets.SqlAlchemyEntityStore", return_value=store,
    ):
        response = await client.post(f"/api/change-sets/{CHANGE_SET_ID}/apply")

    assert response.status_code == 200
    assert response.json()["status"] == "APPLIED"
    assert cs.status == ChangeSetStatus.APPLIED.value


@pytest.mark.anyio
async def test_apply_partial_failure_returns_207(client, db_session):
    cs = _draft()
    store = MagicMock()
    store.update_keyword = AsyncMock(side_effect=LookupError("Keyword k1 not found"))
    store.update_campaign = AsyncMock()
    with _patch_lookup(cs), patch(
        "ppc_dashboard.routers.change_sets.SqlAlchemyEntityStore", return_value=store,
    ):
        response = await client.post(f"/api/change-sets/{CHANGE_SET_ID}/apply")

    assert response.status_code == 207
    data = response.json()
    assert data["status"] == "FAILED"
    assert data["outcome"] == "partial"
    assert data["succeeded"] == ["SP - Bamboo"]
    assert data["failed"] == ["bamboo sheets queen"]
    store.update_campaign.assert_awaited_once()


@pytest.mark.anyio
async def test_apply_after_applied_conflicts(client, db_session):
    cs = _draft()
    cs.status = ChangeSetStatus.APPLIED.value
    with _patch_lookup(cs):
        response = await client.post(f"/api/change-sets/{CHANGE_SET_ID}/apply")
    assert response.status_code == 409
    assert "APPLIED" in response.json()["detail"]


@pytest.mark.anyio
async def test_delete_draft(client, db_session):
    cs = _draft()
    with _patch_lookup(cs):
        response = await client.delete(f"/api/change-sets/{CHANGE_SET_ID}")
    assert response.status_code == 200
    db_session.delete.assert_awaited_once_with(cs)


@pytest.mark.anyio
async def test_delete_exported_conflicts(client, db_session):
    cs = _draft()
    cs.status = ChangeSetStatus.EXPORTED.value
    with _patch_lookup(cs):
        response = await client.delete(f"/api/change-sets/{CHANGE_SET_ID}")
    assert response.status_code == 409
    db_session.delete.assert_not_awaited()
