"""
Intent Models

An intent is the structured output of the language-understanding step.
It names one operation and carries its raw parameters.

DESIGN DECISION: Intents are a closed sum type. Each kind is its own model
and the union is discriminated on ``kind``, so the dispatcher can match
exhaustively instead of falling through a default branch.

Parameters stay loosely typed here (strings straight from the model).
Turning them into typed requests is the validator's job.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
)
from pydantic.alias_generators import to_camel

from ledger_assistant.models.ledger import MutationAction


class _IntentModel(BaseModel):
    # The language model speaks camelCase (startDate, targetItem, ...)
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class RecordedItem(_IntentModel):
    """One transaction as described by the language model."""

    item: Optional[str] = None
    amount: Optional[float] = None
    category: Optional[str] = None
    kind: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("kind", "type"),
    )
    date: Optional[str] = None


class RecordIntent(_IntentModel):
    kind: Literal["RECORD"] = "RECORD"
    transactions: list[RecordedItem] = Field(default_factory=list)


class RangeIntent(_IntentModel):
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    category: Optional[str] = None


class QueryIntent(RangeIntent):
    kind: Literal["QUERY"] = "QUERY"


class ListIntent(RangeIntent):
    kind: Literal["LIST"] = "LIST"


class TopExpenseIntent(RangeIntent):
    kind: Literal["TOP_EXPENSE"] = "TOP_EXPENSE"


class BulkDeleteIntent(RangeIntent):
    kind: Literal["BULK_DELETE"] = "BULK_DELETE"


class TargetedIntent(_IntentModel):
    """DELETE / MODIFY: a descriptor of the target plus the change."""

    target_item: Optional[str] = None
    target_amount: Optional[float] = None
    index_offset: Optional[int] = None
    new_item: Optional[str] = None
    new_amount: Optional[float] = None
    new_category: Optional[str] = None

    @field_validator("action", mode="before", check_fields=False)
    @classmethod
    def normalize_action(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v


class DeleteIntent(TargetedIntent):
    kind: Literal["DELETE"] = "DELETE"
    action: MutationAction = MutationAction.DELETE


class ModifyIntent(TargetedIntent):
    kind: Literal["MODIFY"] = "MODIFY"
    action: MutationAction = MutationAction.UPDATE


class SetBudgetIntent(_IntentModel):
    kind: Literal["SET_BUDGET"] = "SET_BUDGET"
    category: Optional[str] = None
    amount: Optional[float] = None


class CheckBudgetIntent(_IntentModel):
    kind: Literal["CHECK_BUDGET"] = "CHECK_BUDGET"


class UnknownIntent(_IntentModel):
    kind: Literal["UNKNOWN"] = "UNKNOWN"
    reason: Optional[str] = None


Intent = Annotated[
    Union[
        RecordIntent,
        QueryIntent,
        ListIntent,
        TopExpenseIntent,
        DeleteIntent,
        ModifyIntent,
        BulkDeleteIntent,
        SetBudgetIntent,
        CheckBudgetIntent,
        UnknownIntent,
    ],
    Field(discriminator="kind"),
]

_INTENT_ADAPTER: TypeAdapter[Intent] = TypeAdapter(Intent)


def parse_intent(payload: dict[str, Any]) -> Intent:
    """
    Validate a raw intent payload.

    Accepts ``intent`` as a synonym for ``kind`` and any casing of the
    kind value. Raises pydantic.ValidationError for anything else.
    """
    data = dict(payload)
    if "kind" not in data and "intent" in data:
        data["kind"] = data.pop("intent")
    if isinstance(data.get("kind"), str):
        data["kind"] = data["kind"].strip().upper()
    return _INTENT_ADAPTER.validate_python(data)
