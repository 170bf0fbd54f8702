"""
Tests for the syntax and dashboard endpoints. The database session is
replaced with a mock whose execute() returns canned result rows.
"""

import uuid
from datetime import date, timedelta

import pytest
from unittest.mock import AsyncMock, MagicMock
from httpx import AsyncClient, ASGITransport

from ppc_dashboard.database import get_db
from ppc_dashboard.main import app
from ppc_dashboard.models import Campaign

TODAY = date.today()
CAMPAIGN_A = uuid.uuid4()
CAMPAIGN_B = uuid.uuid4()
QUEEN = uuid.uuid4()
KING = uuid.uuid4()
TWIN = uuid.uuid4()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db_session():
    session = MagicMock()
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


def _rows_result(rows):
    result = MagicMock()
    result.all.return_value = rows
    return result


def _one_result(row):
    result = MagicMock()
    result.one.return_value = row
    return result


def _keyword_rows():
    # (keyword id, text, stored label, match type, campaign id, campaign type, portfolio,
    #  date, impressions, clicks, cost, sales, orders)
    return [
        (QUEEN, "bamboo sheets queen", "Bamboo|Queen", "EXACT", CAMPAIGN_A, "SP", "Sheets",
         TODAY, 1000, 20, 10.0, 40.0, 2),
        (QUEEN, "bamboo sheets queen", "Bamboo|Queen", "EXACT", CAMPAIGN_A, "SP", "Sheets",
         TODAY - timedelta(days=1), 500, 10, 5.0, 20.0, 1),
        (KING, "bamboo sheets king size", None, "BROAD", CAMPAIGN_B, "SP", "Sheets",
         TODAY, 200, 4, 4.0, 0.0, 0),
        (TWIN, "cooling sheets twin", "Cooling|Twin", "EXACT", CAMPAIGN_A, "SP", "Sheets",
         TODAY, 100, 1, 1.0, 0.0, 0),
    ]


# ── Syntax ────────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_syntax_groups_sum_per_label(client, db_session):
    db_session.execute.return_value = _rows_result(_keyword_rows())

    response = await client.get("/api/syntax", params={"days": 7})

    assert response.status_code == 200
    data = response.json()
    assert data["end_date"] == TODAY.isoformat()
    groups = data["groups"]
    # unlabelled keywords are classified on the fly
    assert [g["syntax_group"] for g in groups] == ["Bamboo|Queen", "Bamboo|King", "Cooling|Twin"]
    queen = groups[0]
    assert queen["keyword_count"] == 1
    assert queen["campaign_count"] == 1
    assert queen["metrics"]["cost"] == pytest.approx(15.0)
    assert queen["metrics"]["sales"] == pytest.approx(60.0)
    assert queen["metrics"]["acos"] == pytest.approx(25.0)
    assert queen["metrics"]["ctr"] == pytest.approx(2.0)


@pytest.mark.anyio
async def test_syntax_groups_filter_by_match_type_and_root(client, db_session):
    db_session.execute.return_value = _rows_result(_keyword_rows())

    response = await client.get("/api/syntax", params={"match_type": "exact", "root": "Bamboo"})

    assert [g["syntax_group"] for g in response.json()["groups"]] == ["Bamboo|Queen"]


@pytest.mark.anyio
async def test_root_index_groups_sizes_under_their_root(client, db_session):
    db_session.execute.return_value = _rows_result(_keyword_rows())

    response = await client.get("/api/syntax/root-index")

    assert response.status_code == 200
    roots = response.json()["roots"]
    assert [r["root"] for r in roots] == ["Bamboo", "Cooling"]
    bamboo = roots[0]
    assert bamboo["sub_groups"] == ["Bamboo|King", "Bamboo|Queen"]
    assert bamboo["syntax_group_count"] == 2
    assert bamboo["keyword_count"] == 2
    assert bamboo["campaign_count"] == 2
    assert bamboo["metrics"]["cost"] == pytest.approx(19.0)
    assert roots[1]["sub_groups"] == ["Cooling|Twin"]
    assert roots[1]["keyword_count"] == 1


@pytest.mark.anyio
async def test_syntax_with_no_data(client, db_session):
    db_session.execute.return_value = _rows_result([])

    response = await client.get("/api/syntax/root-index")

    assert response.status_code == 200
    assert response.json()["roots"] == []


# ── Dashboard ─────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_summary_compares_with_previous_period(client, db_session):
    db_session.execute.side_effect = [
        _one_result((1000, 50, 25.0, 100.0, 5)),
        _one_result((500, 20, 20.0, 50.0, 2)),
    ]

    response = await client.get("/api/dashboard/summary", params={"preset": "last_7_days"})

    assert response.status_code == 200
    data = response.json()
    assert data["preset"] == "last_7_days"
    assert data["date_range"]["end"] == TODAY.isoformat()
    assert data["metrics"]["cost"] == 25.0
    assert data["metrics"]["acos"] == 25.0
    assert data["metrics"]["aov"] == 20.0
    assert data["previous"]["cost"] == 20.0
    assert data["deltas"]["cost"] == 25.0
    assert data["deltas"]["sales"] == 100.0
    assert db_session.execute.await_count == 2


@pytest.mark.anyio
async def test_summary_rejects_unknown_preset(client, db_session):
    response = await client.get("/api/dashboard/summary", params={"preset": "last_decade"})
    assert response.status_code == 400
    db_session.execute.assert_not_awaited()


@pytest.mark.anyio
async def test_budgets_report_pacing_without_writing(client, db_session):
    campaign = Campaign(
        id=CAMPAIGN_A, campaign_name="SP - Bamboo", amazon_campaign_id="111",
        daily_budget=100.0, portfolio="Sheets",
    )
    db_session.execute.return_value = _rows_result([(campaign, 10.0)])

    response = await client.get("/api/dashboard/budgets")

    assert response.status_code == 200
    data = response.json()
    assert data["date"] == TODAY.isoformat()
    (row,) = data["campaigns"]
    assert row["campaign_id"] == str(CAMPAIGN_A)
    assert row["portfolio"] == "Sheets"
    assert row["daily_budget"] == 100.0
    assert row["spend"] == 10.0
    assert row["pace_percentage"] == 10.0
    assert row["projected_monthly_spend"] == 300.0
    assert row["status"] in {"over-pacing", "under-pacing", "on-track"}
    assert data["over_pacing"] + data["under_pacing"] == (0 if row["status"] == "on-track" else 1)
    db_session.add.assert_not_called()
