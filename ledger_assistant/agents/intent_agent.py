"""
Intent Parsing Agents

DESIGN DECISION: Language understanding is a capability behind a narrow
interface: "given text or image bytes, return a structured intent".
The engine only sees IntentParserInterface, so tests drive it with a
deterministic stub and never call the live model.

CRITICAL BOUNDARIES for the Gemini agent:
   - CAN: Translate a message into exactly one intent
   - CAN: Resolve relative dates ("yesterday") against the reference time
   - CANNOT: Touch the ledger
   - CANNOT: Invent amounts that are not in the message or receipt

The LLM is a TRANSLATOR, not an ORACLE.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import ValidationError as PydanticValidationError

from ledger_assistant.config import GeminiSettings, get_settings
from ledger_assistant.models.intent import Intent, UnknownIntent, parse_intent
from ledger_assistant.models.ledger import BudgetCategory, Category


logger = structlog.get_logger(__name__)


class IntentParserInterface(ABC):
    """Turns a user message into one Intent."""

    @abstractmethod
    async def parse_text(self, text: str, now: datetime) -> Intent:
        """Parse a text message; ``now`` anchors relative dates."""
        pass

    @abstractmethod
    async def parse_image(
        self,
        image_bytes: bytes,
        mime_type: str,
        now: datetime,
    ) -> Intent:
        """Parse a receipt photo into a RECORD intent (or UNKNOWN)."""
        pass


SYSTEM_PROMPT = f"""You are a professional bookkeeping assistant for a personal ledger.
Convert the user's message into exactly ONE JSON object describing their intent.

Every object has a "kind" field, one of:
RECORD, QUERY, LIST, TOP_EXPENSE, DELETE, MODIFY, BULK_DELETE, SET_BUDGET, CHECK_BUDGET, UNKNOWN.

RECORD - the user reports expenses or income:
  {{"kind": "RECORD", "transactions": [{{"item": "lunch", "amount": 150,
    "category": "Food", "type": "expense", "date": "<ISO 8601>"}}]}}
  - Extract every distinct transaction.
  - "category" must be one of {[c.value for c in Category]}.
  - "type" is "expense" or "income".
  - "date" is when it happened. Resolve "yesterday", "last friday" etc. against
    the Current Reference Time. If no time is mentioned use the reference time.

QUERY / LIST / TOP_EXPENSE - totals, a listing, or the biggest spending:
  {{"kind": "QUERY", "startDate": "<ISO 8601>", "endDate": "<ISO 8601>", "category": null}}

BULK_DELETE - delete everything in a period. Only fill startDate and endDate
  when the user names the period explicitly; never guess them.

DELETE / MODIFY - change one earlier record:
  {{"kind": "MODIFY", "targetItem": "lunch", "targetAmount": null, "indexOffset": 0,
    "action": "UPDATE", "newItem": null, "newAmount": 180, "newCategory": null}}
  - "targetItem" when the user names the item, "targetAmount" when they name
    the amount, otherwise "indexOffset" (0 = most recent, 1 = the one before).
  - "action" is "DELETE" or "UPDATE". "undo" means DELETE with indexOffset 0.

SET_BUDGET - {{"kind": "SET_BUDGET", "category": "Food", "amount": 1000}}
  "category" is one of {[c.value for c in BudgetCategory]}; "Total" means
  the overall monthly budget.

CHECK_BUDGET - {{"kind": "CHECK_BUDGET"}}

UNKNOWN - anything else: {{"kind": "UNKNOWN", "reason": "short explanation"}}

Respond with ONLY the JSON object. Never invent amounts."""

RECEIPT_PROMPT = """This is a photo of a receipt or invoice.
Return a RECORD intent with one transaction per purchased line, or one
transaction for the receipt total when lines are unreadable.
If the photo is not a receipt, return {"kind": "UNKNOWN", "reason": "not a receipt"}."""


def extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """
    Pull the first JSON object out of a model response.

    Models sometimes wrap JSON in prose or code fences.
    """
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        return None
    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def intent_from_response(text: str) -> Intent:
    """Validate a model response; anything unusable becomes UNKNOWN."""
    data = extract_json_object(text)
    if data is None:
        logger.warning("Model response contained no JSON object", response=text[:200])
        return UnknownIntent(reason="unparsable model response")
    try:
        return parse_intent(data)
    except PydanticValidationError as e:
        logger.warning(
            "Model response is not a valid intent",
            error_count=e.error_count(),
            kind=data.get("kind", data.get("intent")),
        )
        return UnknownIntent(reason="invalid intent payload")


class GeminiIntentAgent(IntentParserInterface):
    """
    Gemini-backed intent parser.

    API failures propagate: the caller reports them as an external
    service error. Malformed output is not an error, it is UNKNOWN.
    """

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            system_instruction=SYSTEM_PROMPT,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            },
        )

    async def parse_text(self, text: str, now: datetime) -> Intent:
        prompt = f'Current Reference Time: {now.isoformat()}\nUser Input: "{text}"'
        response = await self._model.generate_content_async(prompt)
        intent = intent_from_response(response.text)
        logger.info("Text message parsed", kind=intent.kind, model=self._settings.model_name)
        return intent

    async def parse_image(
        self,
        image_bytes: bytes,
        mime_type: str,
        now: datetime,
    ) -> Intent:
        response = await self._model.generate_content_async([
            f"Current Reference Time: {now.isoformat()}\n{RECEIPT_PROMPT}",
            {"mime_type": mime_type, "data": image_bytes},
        ])
        intent = intent_from_response(response.text)
        logger.info("Receipt image parsed", kind=intent.kind, model=self._settings.model_name)
        return intent
