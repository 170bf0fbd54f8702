"""
Change Set Service — Lifecycle of a batch of proposed campaign/keyword edits.

    DRAFT ──export──▶ EXPORTED ──apply──▶ APPLIED
      │                  │
      └──────apply───────┴──────────────▶ FAILED

Every transition re-runs the validator first; a validation failure refuses
the transition and leaves the status untouched. FAILED is reserved for
errors raised while writing items to the store during apply. Apply is
best-effort: every item is attempted even after an earlier one fails.

Functions here work on ChangeSet rows and never commit; the caller owns
the session and the ActivityLog entries.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from ppc_dashboard.models import (
    Campaign, ChangeSet, ChangeSetItem, ChangeSetStatus, EntityType, Keyword,
)
from ppc_dashboard.services.bulksheet_service import generate_bulksheet_xlsx
from ppc_dashboard.services.change_set_validation import (
    ValidationError, known_fields, validate_change_set_items,
)
from ppc_dashboard.utils import utcnow

logger = logging.getLogger(__name__)

REQUIRED_ITEM_FIELDS = ("entity_type", "entity_id", "entity_name", "changes")

EXPORTABLE = (ChangeSetStatus.DRAFT, ChangeSetStatus.EXPORTED)
APPLICABLE = (ChangeSetStatus.DRAFT, ChangeSetStatus.EXPORTED)
DELETABLE = (ChangeSetStatus.DRAFT,)

# changes key → Campaign column
CAMPAIGN_COLUMNS = {
    "budget": "daily_budget",
    "state": "state",
    "tosModifier": "tos_modifier",
    "rosModifier": "ros_modifier",
    "pdpModifier": "pdp_modifier",
}
KEYWORD_COLUMNS = {
    "bid": "bid",
    "state": "state",
}


# ── Exceptions ────────────────────────────────────────────────────────

class ChangeSetError(Exception):
    """Base class for change-set failures surfaced to API callers."""


class MalformedChangeSetError(ChangeSetError):
    """The request is structurally unusable (no items, missing item fields)."""


class ChangeSetValidationError(ChangeSetError):
    def __init__(self, errors: Sequence[ValidationError]):
        self.errors = list(errors)
        super().__init__(f"Validation failed with {len(self.errors)} error(s)")


class ChangeSetPolicyError(ChangeSetError):
    """The requested operation is not allowed from the current status."""

    def __init__(self, status: str, action: str):
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} a change set with status {status}; "
            f"{action} is only allowed from {_allowed_from(action)}."
        )


def _allowed_from(action: str) -> str:
    allowed = {"export": EXPORTABLE, "apply": APPLICABLE, "delete": DELETABLE}.get(action, ())
    return " or ".join(s.value for s in allowed) or "no status"


# ── Entity store ──────────────────────────────────────────────────────

class EntityStore(Protocol):
    """Writes column values onto a live campaign or keyword by internal id."""

    async def update_campaign(self, entity_id: str, values: dict) -> None: ...

    async def update_keyword(self, entity_id: str, values: dict) -> None: ...


class SqlAlchemyEntityStore:
    """EntityStore backed by the campaigns/keywords tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def update_campaign(self, entity_id: str, values: dict) -> None:
        await self._update(Campaign, entity_id, values)

    async def update_keyword(self, entity_id: str, values: dict) -> None:
        await self._update(Keyword, entity_id, values)

    async def _update(self, model, entity_id: str, values: dict) -> None:
        try:
            row_id = uuid.UUID(entity_id)
        except ValueError:
            raise ValueError(f"invalid id {entity_id!r}")

        # Savepoint per item so one failed write doesn't poison the outer transaction
        async with self.db.begin_nested():
            result = await self.db.execute(
                update(model).where(model.id == row_id).values(**values)
            )
        if result.rowcount == 0:
            raise LookupError(f"{model.__name__} {entity_id} not found")


# ── Helpers ───────────────────────────────────────────────────────────

def _status(change_set: ChangeSet) -> ChangeSetStatus:
    return ChangeSetStatus(change_set.status)


def _guard(change_set: ChangeSet, action: str, allowed: tuple) -> None:
    status = _status(change_set)
    if status not in allowed:
        raise ChangeSetPolicyError(status.value, action)


def _validate(items: Sequence[Any]) -> None:
    errors = validate_change_set_items(items)
    if errors:
        raise ChangeSetValidationError(errors)


def campaign_mutation(changes: dict) -> dict:
    """Column values for a campaign; only keys present in ``changes`` are written."""
    values = {}
    for key, column in CAMPAIGN_COLUMNS.items():
        if changes.get(key) is None:
            continue
        value = changes[key]
        if key == "state":
            value = value.upper()
        elif key.endswith("Modifier"):
            value = int(value)
        values[column] = value
    return values


def keyword_mutation(changes: dict) -> dict:
    values = {}
    for key, column in KEYWORD_COLUMNS.items():
        if changes.get(key) is None:
            continue
        value = changes[key]
        values[column] = value.upper() if key == "state" else value
    return values


def strip_unknown_changes(entity_type: str, changes: dict) -> dict:
    fields = known_fields(entity_type)
    return {k: v for k, v in changes.items() if k in fields and v is not None}


# ── Transitions ───────────────────────────────────────────────────────

def create_change_set(items: Sequence[dict], name: Optional[str] = None) -> ChangeSet:
    """
    Build a DRAFT ChangeSet from snake_case item dicts. Nothing is
    persisted; the caller adds the returned row to its session.

    Raises MalformedChangeSetError or ChangeSetValidationError before any
    row is built.
    """
    if not items:
        raise MalformedChangeSetError("A change set needs at least one item.")

    for index, item in enumerate(items):
        missing = [f for f in REQUIRED_ITEM_FIELDS if item.get(f) is None]
        if missing:
            raise MalformedChangeSetError(
                f"Item {index} is missing required field(s): {', '.join(missing)}"
            )
        if item["entity_type"] not in (EntityType.CAMPAIGN.value, EntityType.KEYWORD.value):
            raise MalformedChangeSetError(
                f"Item {index} has unsupported entity type {item['entity_type']!r}"
            )
        if not isinstance(item["changes"], dict):
            raise MalformedChangeSetError(f"Item {index} changes must be an object")

    _validate(items)

    change_set = ChangeSet(name=name, status=ChangeSetStatus.DRAFT.value)
    for position, item in enumerate(items):
        change_set.items.append(ChangeSetItem(
            position=position,
            entity_type=item["entity_type"],
            entity_id=str(item["entity_id"]),
            entity_name=item["entity_name"],
            campaign_name=item.get("campaign_name"),
            ad_group_name=item.get("ad_group_name"),
            amazon_campaign_id=item.get("amazon_campaign_id"),
            amazon_ad_group_id=item.get("amazon_ad_group_id"),
            amazon_keyword_id=item.get("amazon_keyword_id"),
            match_type=item.get("match_type"),
            changes=strip_unknown_changes(item["entity_type"], item["changes"]),
            previous_values=item.get("previous_values"),
        ))

    logger.info(f"Built change set {name!r} with {len(items)} items")
    return change_set


def export_change_set(change_set: ChangeSet) -> bytes:
    """Validate, render the bulksheet and mark the set EXPORTED. Re-export re-stamps."""
    _guard(change_set, "export", EXPORTABLE)
    _validate(change_set.items)

    content = generate_bulksheet_xlsx(change_set.items)
    change_set.status = ChangeSetStatus.EXPORTED.value
    change_set.exported_at = utcnow()
    logger.info(f"Exported change set {change_set.id} ({len(change_set.items)} items)")
    return content


@dataclass
class ApplyResult:
    status: ChangeSetStatus
    errors: list[str] = field(default_factory=list)
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def outcome(self) -> str:
        if not self.errors:
            return "applied"
        return "partial" if self.succeeded else "all_failed"

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "outcome": self.outcome,
            "errors": self.errors,
            "succeeded": self.succeeded,
            "failed": self.failed,
        }


async def apply_change_set(change_set: ChangeSet, store: EntityStore) -> ApplyResult:
    """
    Write every item's changes through ``store``. Validation failures raise
    and leave the status alone; write failures are collected per item and
    end in FAILED.
    """
    _guard(change_set, "apply", APPLICABLE)
    _validate(change_set.items)

    result = ApplyResult(status=ChangeSetStatus.APPLIED)

    for item in change_set.items:
        changes = item.changes or {}
        try:
            if item.entity_type == EntityType.CAMPAIGN.value:
                await store.update_campaign(item.entity_id, campaign_mutation(changes))
            elif item.entity_type == EntityType.KEYWORD.value:
                await store.update_keyword(item.entity_id, keyword_mutation(changes))
            else:
                raise ValueError(f"unsupported entity type {item.entity_type}")
            result.succeeded.append(item.entity_name)
        except Exception as e:
            message = f'Failed to apply {item.entity_type} "{item.entity_name}": {e}'
            logger.warning(message)
            result.errors.append(message)
            result.failed.append(item.entity_name)

    if result.errors:
        result.status = ChangeSetStatus.FAILED
        change_set.status = ChangeSetStatus.FAILED.value
        change_set.error_message = "\n".join(result.errors)
        logger.warning(
            f"Change set {change_set.id} failed: {len(result.failed)} of "
            f"{len(change_set.items)} items could not be applied"
        )
    else:
        change_set.status = ChangeSetStatus.APPLIED.value
        change_set.applied_at = utcnow()
        change_set.error_message = None
        logger.info(f"Applied change set {change_set.id} ({len(result.succeeded)} items)")

    return result


def ensure_deletable(change_set: ChangeSet) -> None:
    """Only DRAFT sets may be deleted; anything else is a policy error."""
    _guard(change_set, "delete", DELETABLE)
