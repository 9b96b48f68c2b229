"""
Tests for turning model responses into intents.

Only the response handling is tested; nothing here calls Gemini.
"""

from ledger_assistant.agents import extract_json_object, intent_from_response
from ledger_assistant.models.intent import ListIntent, RecordIntent, UnknownIntent


class TestResponseParsing:
    """Tests for intent_from_response."""

    def test_plain_json(self):
        intent = intent_from_response(
            '{"intent": "RECORD", "transactions": [{"item": "lunch", "amount": 150, '
            '"category": "Food", "type": "expense", "date": "2024-05-01"}]}'
        )
        assert isinstance(intent, RecordIntent)
        assert intent.transactions[0].item == "lunch"

    def test_json_wrapped_in_code_fence(self):
        intent = intent_from_response('```json\n{"intent": "list", "category": "Food"}\n```')
        assert isinstance(intent, ListIntent)
        assert intent.category == "Food"

    def test_no_json_is_unknown(self):
        intent = intent_from_response("Sorry, I can't help with that.")
        assert isinstance(intent, UnknownIntent)
        assert intent.reason == "unparsable model response"

    def test_invalid_payload_is_unknown(self):
        intent = intent_from_response('{"intent": "LAUNCH_ROCKET"}')
        assert isinstance(intent, UnknownIntent)
        assert intent.reason == "invalid intent payload"

    def test_extract_rejects_arrays_and_broken_json(self):
        assert extract_json_object("[1, 2, 3]") is None
        assert extract_json_object('{"intent": ') is None
        assert extract_json_object('noise {"a": 1} noise') == {"a": 1}
