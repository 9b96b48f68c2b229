"""AI Agents package."""

from ledger_assistant.agents.intent_agent import (
    GeminiIntentAgent,
    IntentParserInterface,
    extract_json_object,
    intent_from_response,
)

__all__ = [
    "GeminiIntentAgent",
    "IntentParserInterface",
    "extract_json_object",
    "intent_from_response",
]
