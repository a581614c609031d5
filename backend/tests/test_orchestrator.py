"""
Tests for the claim conversation service and turn graph.
"""

import json

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from conftest import FailingChatModel, fake_model, tool_call
from roadside.core.config import settings
from roadside.core.exceptions import ClaimNotFoundError, TurnProcessingError
from roadside.db.models import ClaimStage, ServiceDispatch, STAGE_ORDER
from roadside.orchestration.graph import EMPTY_REPLY_MESSAGE, ROUND_LIMIT_MESSAGE
from roadside.services import chat
from roadside.services.chat import ClaimConversationService, model_history


class TestHappyPath:

    def test_full_claim_in_five_turns(self, db, store, new_claim, policies, providers):
        model = fake_model(
            tool_call("save_claim_data", {
                "driver_name": "Maria Lopez",
                "policy_number": "POL-1001",
                "location": "Highway 5, exit 12",
            }),
            "Thanks Maria. What happened to your car?",
            tool_call("save_claim_data", {
                "incident_description": "Engine died and it will not start",
                "driver_phone": "+15550101",
                "driver_email": "maria.lopez@example.com",
            }),
            "Got it. Can you confirm these details so I can check your coverage?",
            tool_call("record_coverage_decision", {
                "is_covered": True,
                "services_needed": ["tow_truck"],
                "user_confirmed": True,
            }),
            "Good news, towing is covered. Shall I send a tow truck?",
            tool_call("arrange_services", {
                "services_to_arrange": [{"service_type": "tow_truck"}],
                "user_confirmed": True,
            }),
            "QuickTow is on the way and should arrive in about 25 minutes.",
            tool_call("complete_claim", {"user_confirmed": True}),
            "Your claim is complete. Stay safe!",
        )
        service = ClaimConversationService(db, llm=model)

        turns = [
            "Hi, I'm Maria Lopez, policy POL-1001. I'm stuck on Highway 5 at exit 12.",
            "The engine died. My phone is +15550101 and email maria.lopez@example.com.",
            "Yes, everything is correct.",
            "Yes please, send a tow truck.",
            "That's all, thank you.",
        ]
        stages = []
        results = []
        for message in turns:
            result = service.process_turn(new_claim.id, message)
            results.append(result)
            stages.append(STAGE_ORDER.index(ClaimStage(result.status)))

        assert stages == sorted(stages)
        assert [r.status for r in results] == [
            "data_gathering",
            "data_gathering",
            "coverage_check",
            "arranging_services",
            "completed",
        ]
        assert results[-1].message == "Your claim is complete. Stay safe!"
        assert len(results[3].notifications) == 2

        claim = store.load(new_claim.id)
        assert len(claim.conversation_history) == 11
        assert claim.conversation_history[1] == {
            "role": "user",
            "content": turns[0],
            "timestamp": claim.conversation_history[1]["timestamp"],
        }
        assert claim.nearest_garage == "QuickTow"
        assert claim.is_covered is True
        assert db.query(ServiceDispatch).count() == 1

    def test_model_sees_claim_state_and_history(self, db, ready_claim, providers):
        model = fake_model("Where exactly are you?")
        service = ClaimConversationService(db, llm=model)
        service.process_turn(ready_claim.id, "Hello again")

        prompt = model.received[0]
        assert isinstance(prompt[0], SystemMessage)
        assert "POL-1001" in prompt[0].content
        assert isinstance(prompt[1], AIMessage)
        assert prompt[1].content == settings.GREETING_MESSAGE
        assert isinstance(prompt[-1], HumanMessage)
        assert prompt[-1].content == "Hello again"


class TestGuardedOutcomes:

    def test_not_covered(self, db, store, ready_claim, providers):
        store.update(ready_claim.id, {"policy_number": "POL-1003"})
        db.commit()
        model = fake_model(
            tool_call("record_coverage_decision", {
                "is_covered": True,
                "services_needed": ["tow_truck"],
                "user_confirmed": True,
            }),
            tool_call("arrange_services", {
                "services_to_arrange": [{"service_type": "tow_truck"}],
                "user_confirmed": True,
            }),
            "I'm sorry, your policy doesn't include roadside assistance.",
        )
        result = ClaimConversationService(db, llm=model).process_turn(ready_claim.id, "Yes, that's right.")

        assert result.status == "coverage_check"
        assert result.claim["is_covered"] is False
        assert [t["success"] for t in result.tool_trace] == [True, False]
        assert db.query(ServiceDispatch).count() == 0
        assert result.notifications == []

    def test_ambiguous_identity(self, db, new_claim, policies):
        model = fake_model(
            tool_call("find_policy_by_name", {"holder_name": "Carter"}),
            "I found two policies under that name. Could you give me your policy number?",
        )
        result = ClaimConversationService(db, llm=model).process_turn(new_claim.id, "My name is Carter")

        tool_messages = [m for m in model.received[1] if isinstance(m, ToolMessage)]
        assert len(tool_messages) == 1
        payload = json.loads(tool_messages[0].content)
        assert payload["single_match"] is False
        assert result.claim["policy_number"] is None
        assert result.status == "data_gathering"

    def test_tool_round_limit(self, db, store, new_claim, policies, monkeypatch):
        monkeypatch.setattr(settings, "MAX_TOOL_ROUNDS", 2)
        lookup = {"phone_number": "+15550101"}
        model = fake_model(
            tool_call("find_policy_by_phone", lookup, "call_1"),
            tool_call("find_policy_by_phone", lookup, "call_2"),
            tool_call("find_policy_by_phone", lookup, "call_3"),
        )
        result = ClaimConversationService(db, llm=model).process_turn(new_claim.id, "Find my policy")

        assert result.message == ROUND_LIMIT_MESSAGE
        assert result.fallback_reason == "tool_round_limit"
        assert len(model.received) == 3
        assert len(result.tool_trace) == 2
        history = store.load(new_claim.id).conversation_history
        assert history[-1]["content"] == ROUND_LIMIT_MESSAGE


class TestFailures:

    def test_model_failure_rolls_back_turn(self, db, store, new_claim):
        model = FailingChatModel(
            fail_after=1,
            messages=iter([tool_call("save_claim_data", {"location": "Main Street"})]),
        )
        service = ClaimConversationService(db, llm=model)

        with pytest.raises(TurnProcessingError) as exc_info:
            service.process_turn(new_claim.id, "I'm on Main Street")

        assert exc_info.value.status_code == 502
        claim = store.load(new_claim.id)
        assert claim.location is None
        assert len(claim.conversation_history) == 1

    def test_unknown_claim(self, db):
        service = ClaimConversationService(db, llm=fake_model("unused"))
        with pytest.raises(ClaimNotFoundError):
            service.process_turn("no-such-claim", "Hello")

    def test_open_claim(self, db):
        snapshot = ClaimConversationService(db, llm=fake_model()).open_claim()
        assert snapshot["status"] == "data_gathering"
        assert snapshot["conversation_history"][0]["content"] == settings.GREETING_MESSAGE


class TestHistory:

    def test_human_agent_entries_are_assistant_turns(self):
        history = model_history([
            {"role": "assistant", "content": "Hello"},
            {"role": "user", "content": "Hi"},
            {"role": "user", "content": "Agent Sam here, I've called the garage.", "author": "human_agent"},
            {"role": "system", "content": "ignored"},
        ])
        assert history == [
            {"role": "assistant", "content": "Hello"},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Agent Sam here, I've called the garage."},
        ]

    def test_human_agent_reply_reaches_model(self, db, store, new_claim):
        store.append_transcript(new_claim.id, [
            {"role": "assistant", "content": "This is Sam from the claims team.", "author": "human_agent"},
        ])
        db.commit()
        model = fake_model("Thanks, how else can I help?")
        ClaimConversationService(db, llm=model).process_turn(new_claim.id, "Thanks Sam")

        ai_contents = [m.content for m in model.received[0] if isinstance(m, AIMessage)]
        assert "This is Sam from the claims team." in ai_contents

    def test_caller_history_replaces_stored_context(self, db, store, new_claim):
        model = fake_model("Noted.")
        ClaimConversationService(db, llm=model).process_turn(
            new_claim.id,
            "Continue",
            conversation_history=[{"role": "user", "content": "Earlier message from another channel"}],
        )

        contents = [m.content for m in model.received[0][1:]]
        assert contents == ["Earlier message from another channel", "Continue"]
        assert len(store.load(new_claim.id).conversation_history) == 3


class TestEnvelopeMode:

    @pytest.fixture(autouse=True)
    def envelope_mode(self, monkeypatch):
        monkeypatch.setattr(settings, "STRUCTURED_OUTPUT", "json_envelope")

    def test_envelope_saves_fields(self, db, store, new_claim):
        model = fake_model(json.dumps({
            "message": "Thanks, what happened to the car?",
            "extracted_data": {"location": "Main Street", "driver_name": "Maria Lopez", "favourite_colour": "red"},
            "decisions": {},
            "next_stage": "data_gathering",
        }))
        result = ClaimConversationService(db, llm=model).process_turn(new_claim.id, "Maria, on Main Street")

        assert result.message == "Thanks, what happened to the car?"
        assert result.fallback_reason is None
        claim = store.load(new_claim.id)
        assert claim.location == "Main Street"
        assert claim.driver_name == "Maria Lopez"

    def test_refused_decision_keeps_message(self, db, store, new_claim):
        model = fake_model(json.dumps({
            "message": "All done, goodbye!",
            "decisions": {"complete": True, "user_confirmed": True},
            "next_stage": "completed",
        }))
        result = ClaimConversationService(db, llm=model).process_turn(new_claim.id, "Bye")

        assert result.message == "All done, goodbye!"
        assert result.status == "data_gathering"
        assert result.tool_trace == [{"round": 1, "tool": "complete_claim", "success": False}]

    def test_unparseable_reply_used_as_text(self, db, store, new_claim):
        model = fake_model("Could you tell me where you are?")
        result = ClaimConversationService(db, llm=model).process_turn(new_claim.id, "Help")

        assert result.message == "Could you tell me where you are?"
        assert result.fallback_reason == "envelope_unparseable"
        assert store.load(new_claim.id).conversation_history[-1]["content"] == "Could you tell me where you are?"

    def test_empty_envelope_message_falls_back(self, db, store, new_claim):
        model = fake_model(json.dumps({
            "message": "   ",
            "extracted_data": {"location": "Main Street"},
        }))
        result = ClaimConversationService(db, llm=model).process_turn(new_claim.id, "I'm on Main Street")

        assert result.message == EMPTY_REPLY_MESSAGE
        assert result.fallback_reason == "empty_reply"
        claim = store.load(new_claim.id)
        assert claim.location == "Main Street"
        assert claim.conversation_history[-1]["content"] == EMPTY_REPLY_MESSAGE


class TestTurnLocks:

    def test_locks_released_after_turns(self, db, store):
        before = len(chat._claim_locks)
        service = ClaimConversationService(db, llm=fake_model(*["Where are you right now?"] * 5))
        for _ in range(5):
            claim = store.create()
            db.commit()
            service.process_turn(claim.id, "My car broke down")

        assert len(chat._claim_locks) == before

    def test_same_lock_while_held(self):
        lock = chat._claim_lock("claim-1")
        assert chat._claim_lock("claim-1") is lock
        assert chat._claim_lock("claim-2") is not lock
