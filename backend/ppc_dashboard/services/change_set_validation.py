"""
Change-set validation — value-range checks for proposed campaign and
keyword edits. Returns every problem across every item in one pass;
never raises.
"""

from dataclasses import dataclass
from typing import Any, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

NO_CHANGES_MESSAGE = "At least one change is required"

_MODIFIER_MESSAGE = "Placement modifier must be 0-900%"

# Friendly messages for range/choice failures; type errors keep pydantic's text
_FIELD_MESSAGES = {
    "budget": "Budget must be at least $1",
    "bid": "Bid must be at least $0.02",
    "state": "State must be 'enabled' or 'paused'",
    "tosModifier": _MODIFIER_MESSAGE,
    "rosModifier": _MODIFIER_MESSAGE,
    "pdpModifier": _MODIFIER_MESSAGE,
}
_RANGE_ERRORS = {"greater_than_equal", "less_than_equal", "literal_error"}


class _Changes(BaseModel):
    # Unknown keys are ignored here; the create endpoint strips them before persisting
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def _require_one_change(self):
        if all(getattr(self, name) is None for name in type(self).model_fields):
            raise ValueError(NO_CHANGES_MESSAGE)
        return self


class CampaignChanges(_Changes):
    budget: Optional[float] = Field(None, ge=1, strict=True)
    state: Optional[Literal["enabled", "paused"]] = None
    tos_modifier: Optional[int] = Field(None, ge=0, le=900, strict=True, alias="tosModifier")
    ros_modifier: Optional[int] = Field(None, ge=0, le=900, strict=True, alias="rosModifier")
    pdp_modifier: Optional[int] = Field(None, ge=0, le=900, strict=True, alias="pdpModifier")

    @field_validator("tos_modifier", "ros_modifier", "pdp_modifier", mode="before")
    @classmethod
    def _integral_float(cls, value):
        # JSON clients may send 50.0 for 50
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value


class KeywordChanges(_Changes):
    bid: Optional[float] = Field(None, ge=0.02, strict=True)
    state: Optional[Literal["enabled", "paused"]] = None


CAMPAIGN_FIELDS = ("budget", "state", "tosModifier", "rosModifier", "pdpModifier")
KEYWORD_FIELDS = ("bid", "state")


@dataclass
class ValidationError:
    item_index: int
    entity_name: str
    field: str
    message: str

    def to_dict(self) -> dict:
        return {
            "itemIndex": self.item_index,
            "entityName": self.entity_name,
            "field": self.field,
            "message": self.message,
        }


def _get(item: Any, snake: str, camel: str) -> Any:
    if isinstance(item, dict):
        return item.get(snake, item.get(camel))
    return getattr(item, snake, None)


def schema_for(entity_type: Optional[str]) -> type[_Changes]:
    return CampaignChanges if entity_type == "CAMPAIGN" else KeywordChanges


def known_fields(entity_type: Optional[str]) -> tuple[str, ...]:
    return CAMPAIGN_FIELDS if entity_type == "CAMPAIGN" else KEYWORD_FIELDS


def _message_for(field_name: str, error: dict) -> str:
    if error["type"] == "value_error":
        return str(error["ctx"]["error"])
    if error["type"] in _RANGE_ERRORS and field_name in _FIELD_MESSAGES:
        return _FIELD_MESSAGES[field_name]
    return error["msg"]


def validate_change_set_items(items: Sequence[Any]) -> list[ValidationError]:
    """
    Validate each item's ``changes`` map against its entity type's schema.
    Items may be dicts (camelCase or snake_case keys) or ChangeSetItem rows.
    An empty list means every item is valid.
    """
    errors: list[ValidationError] = []

    for index, item in enumerate(items):
        entity_type = _get(item, "entity_type", "entityType")
        entity_name = _get(item, "entity_name", "entityName") or ""
        changes = _get(item, "changes", "changes")

        try:
            schema_for(entity_type).model_validate(changes)
        except PydanticValidationError as exc:
            for error in exc.errors():
                field_name = ".".join(str(part) for part in error["loc"]) or "changes"
                errors.append(ValidationError(
                    item_index=index,
                    entity_name=entity_name,
                    field=field_name,
                    message=_message_for(field_name, error),
                ))

    return errors


def serialize_errors(errors: Sequence[ValidationError]) -> list[dict]:
    return [e.to_dict() for e in errors]
