"""
Tests for parsing JSON replies from the model.
"""

from roadside.orchestration.utils import extract_json_from_llm_response, parse_turn_envelope


class TestExtractJson:

    def test_plain_object(self):
        assert extract_json_from_llm_response('{"message": "hi"}') == {"message": "hi"}

    def test_fenced_block(self):
        content = 'Here you go:\n```json\n{"message": "hi", "next_stage": null}\n```'
        assert extract_json_from_llm_response(content) == {"message": "hi", "next_stage": None}

    def test_object_inside_prose(self):
        content = 'Sure! {"message": "Where are you {exactly}?"} Hope that helps.'
        assert extract_json_from_llm_response(content) == {"message": "Where are you {exactly}?"}

    def test_trailing_commas(self):
        assert extract_json_from_llm_response('{"message": "hi", "extracted_data": {"location": "A1",},}') == {
            "message": "hi",
            "extracted_data": {"location": "A1"},
        }

    def test_no_object(self):
        assert extract_json_from_llm_response("I can help with that.") is None
        assert extract_json_from_llm_response("") is None

    def test_array_is_not_an_object(self):
        assert extract_json_from_llm_response("[1, 2, 3]") is None


class TestParseTurnEnvelope:

    def test_full_envelope(self):
        envelope = parse_turn_envelope("""{
            "message": "Thanks, I've arranged a tow truck.",
            "extracted_data": {"location": "Main St"},
            "decisions": {
                "user_confirmed": true,
                "services_to_arrange": [{"service_type": "tow_truck"}]
            },
            "next_stage": "arranging_services"
        }""")
        assert envelope.message == "Thanks, I've arranged a tow truck."
        assert envelope.extracted_data == {"location": "Main St"}
        assert envelope.decisions.user_confirmed is True
        assert envelope.decisions.services_to_arrange[0].service_type == "tow_truck"
        assert envelope.decisions.coverage is None
        assert envelope.degraded is False

    def test_null_sections_default(self):
        envelope = parse_turn_envelope('{"message": "Hello", "extracted_data": null, "decisions": null}')
        assert envelope.extracted_data == {}
        assert envelope.decisions.complete is False

    def test_malformed_decisions_keep_message(self):
        envelope = parse_turn_envelope('{"message": "Got it.", "decisions": {"services_to_arrange": "tow"}}')
        assert envelope.message == "Got it."
        assert envelope.degraded is True
        assert envelope.decisions.services_to_arrange is None
        assert envelope.extracted_data == {}

    def test_missing_message(self):
        assert parse_turn_envelope('{"extracted_data": {"location": "Main St"}}') is None

    def test_not_json(self):
        assert parse_turn_envelope("Sorry, where are you?") is None
