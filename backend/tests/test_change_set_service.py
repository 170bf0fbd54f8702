"""
Tests for the change-set lifecycle: create, export, apply and delete guards.
"""

import pytest
from unittest.mock import AsyncMock

from ppc_dashboard.models import ChangeSet, ChangeSetItem, ChangeSetStatus
from ppc_dashboard.services.change_set_service import (
    ChangeSetPolicyError,
    ChangeSetValidationError,
    MalformedChangeSetError,
    apply_change_set,
    campaign_mutation,
    create_change_set,
    ensure_deletable,
    export_change_set,
    keyword_mutation,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _kw(entity_id="kw-1", name="bamboo sheets", **changes):
    return {
        "entity_type": "KEYWORD",
        "entity_id": entity_id,
        "entity_name": name,
        "changes": changes or {"bid": 1.25},
        "amazon_keyword_id": "A" + entity_id,
        "match_type": "EXACT",
    }


def _camp(entity_id="camp-1", name="SP - Bamboo", **changes):
    return {
        "entity_type": "CAMPAIGN",
        "entity_id": entity_id,
        "entity_name": name,
        "changes": changes or {"budget": 40.0},
        "amazon_campaign_id": "C" + entity_id,
    }


def _store():
    store = AsyncMock()
    store.update_campaign = AsyncMock(return_value=None)
    store.update_keyword = AsyncMock(return_value=None)
    return store


# ── Create ────────────────────────────────────────────────────────────

def test_create_builds_draft_with_ordered_items():
    cs = create_change_set([_kw("k1"), _camp("c1")], name="Bid cleanup")
    assert cs.status == ChangeSetStatus.DRAFT.value
    assert cs.name == "Bid cleanup"
    assert [i.position for i in cs.items] == [0, 1]
    assert [i.entity_type for i in cs.items] == ["KEYWORD", "CAMPAIGN"]
    assert cs.items[0].amazon_keyword_id == "Ak1"


def test_create_requires_items():
    with pytest.raises(MalformedChangeSetError):
        create_change_set([])


def test_create_requires_item_fields():
    item = _kw()
    item["entity_name"] = None
    with pytest.raises(MalformedChangeSetError, match="entity_name"):
        create_change_set([item])


def test_create_rejects_unknown_entity_type():
    item = _kw()
    item["entity_type"] = "AD_GROUP"
    with pytest.raises(MalformedChangeSetError, match="AD_GROUP"):
        create_change_set([item])


def test_create_runs_validator():
    with pytest.raises(ChangeSetValidationError) as exc_info:
        create_change_set([_kw(bid=0.01), _camp(tosModifier=901)])
    fields = {(e.item_index, e.field) for e in exc_info.value.errors}
    assert fields == {(0, "bid"), (1, "tosModifier")}


def test_create_strips_unknown_change_keys():
    cs = create_change_set([_kw(bid=1.0, note="from ui", state=None)])
    assert cs.items[0].changes == {"bid": 1.0}


# ── Export ────────────────────────────────────────────────────────────

def test_export_marks_exported_and_returns_xlsx():
    cs = create_change_set([_kw()])
    content = export_change_set(cs)
    assert content[:2] == b"PK"
    assert cs.status == ChangeSetStatus.EXPORTED.value
    assert cs.exported_at is not None


def test_re_export_is_allowed():
    cs = create_change_set([_kw()])
    export_change_set(cs)
    export_change_set(cs)
    assert cs.status == ChangeSetStatus.EXPORTED.value


@pytest.mark.parametrize("status", [ChangeSetStatus.APPLIED, ChangeSetStatus.FAILED])
def test_export_refused_after_apply(status):
    cs = create_change_set([_kw()])
    cs.status = status.value
    with pytest.raises(ChangeSetPolicyError, match=status.value):
        export_change_set(cs)


def test_export_revalidates_and_leaves_status():
    cs = ChangeSet(name="bad", status=ChangeSetStatus.DRAFT.value)
    cs.items.append(ChangeSetItem(
        position=0, entity_type="KEYWORD", entity_id="k1", entity_name="kw", changes={"bid": 0.001},
    ))
    with pytest.raises(ChangeSetValidationError):
        export_change_set(cs)
    assert cs.status == ChangeSetStatus.DRAFT.value
    assert cs.exported_at is None


# ── Apply ─────────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_apply_all_succeed():
    cs = create_change_set([_kw("k1", bid=0.75, state="paused"), _camp("c1", budget=40.0, tosModifier=25)])
    store = _store()

    result = await apply_change_set(cs, store)

    assert result.status == ChangeSetStatus.APPLIED
    assert result.outcome == "applied"
    assert result.errors == []
    assert cs.status == ChangeSetStatus.APPLIED.value
    assert cs.applied_at is not None
    store.update_keyword.assert_awaited_once_with("k1", {"bid": 0.75, "state": "PAUSED"})
    store.update_campaign.assert_awaited_once_with("c1", {"daily_budget": 40.0, "tos_modifier": 25})


@pytest.mark.anyio
async def test_apply_from_exported():
    cs = create_change_set([_kw()])
    export_change_set(cs)
    result = await apply_change_set(cs, _store())
    assert result.status == ChangeSetStatus.APPLIED


@pytest.mark.anyio
async def test_apply_partial_failure_attempts_every_item():
    cs = create_change_set([_kw("k1", name="one"), _kw("k2", name="two"), _kw("k3", name="three")])
    store = _store()
    store.update_keyword.side_effect = [None, RuntimeError("row locked"), None]

    result = await apply_change_set(cs, store)

    assert store.update_keyword.await_count == 3
    assert result.status == ChangeSetStatus.FAILED
    assert result.outcome == "partial"
    assert result.succeeded == ["one", "three"]
    assert result.failed == ["two"]
    assert len(result.errors) == 1
    assert result.errors[0] == 'Failed to apply KEYWORD "two": row locked'
    assert cs.status == ChangeSetStatus.FAILED.value
    assert "row locked" in cs.error_message
    assert cs.applied_at is None


@pytest.mark.anyio
async def test_apply_every_item_failing():
    cs = create_change_set([_kw("k1"), _camp("c1")])
    store = _store()
    store.update_keyword.side_effect = LookupError("Keyword k1 not found")
    store.update_campaign.side_effect = LookupError("Campaign c1 not found")

    result = await apply_change_set(cs, store)

    assert result.outcome == "all_failed"
    assert len(result.errors) == 2
    assert cs.error_message.count("\n") == 1


@pytest.mark.anyio
async def test_apply_validation_failure_is_not_failed_status():
    cs = ChangeSet(name="bad", status=ChangeSetStatus.EXPORTED.value)
    cs.items.append(ChangeSetItem(
        position=0, entity_type="CAMPAIGN", entity_id="c1", entity_name="camp", changes={},
    ))
    store = _store()

    with pytest.raises(ChangeSetValidationError):
        await apply_change_set(cs, store)

    assert cs.status == ChangeSetStatus.EXPORTED.value
    store.update_campaign.assert_not_awaited()


@pytest.mark.anyio
async def test_apply_refused_when_already_applied():
    cs = create_change_set([_kw()])
    cs.status = ChangeSetStatus.APPLIED.value
    store = _store()
    with pytest.raises(ChangeSetPolicyError):
        await apply_change_set(cs, store)
    store.update_keyword.assert_not_awaited()


def test_mutations_only_write_present_fields():
    assert campaign_mutation({"state": "enabled"}) == {"state": "ENABLED"}
    assert campaign_mutation({"rosModifier": 0, "pdpModifier": 900}) == {"ros_modifier": 0, "pdp_modifier": 900}
    mutation = campaign_mutation({"tosModifier": 50.0})
    assert mutation == {"tos_modifier": 50}
    assert isinstance(mutation["tos_modifier"], int)
    assert keyword_mutation({"bid": 2.0}) == {"bid": 2.0}
    assert keyword_mutation({"bid": None, "state": "paused"}) == {"state": "PAUSED"}


# ── Delete ────────────────────────────────────────────────────────────

def test_delete_allowed_for_draft():
    ensure_deletable(create_change_set([_kw()]))


@pytest.mark.parametrize("status", [
    ChangeSetStatus.EXPORTED, ChangeSetStatus.APPLIED, ChangeSetStatus.FAILED,
])
def test_delete_refused_otherwise(status):
    cs = create_change_set([_kw()])
    cs.status = status.value
    with pytest.raises(ChangeSetPolicyError) as exc_info:
        ensure_deletable(cs)
    assert exc_info.value.status == status.value
    assert "only allowed from DRAFT" in str(exc_info.value)
