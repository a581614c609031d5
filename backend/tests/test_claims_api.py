"""
Tests for the claims, policies and providers API endpoints.
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import FailingChatModel, fake_model, tool_call
from roadside.api.routes.claims import CLAIM_NOT_FOUND_MESSAGE
from roadside.services.chat import ASSISTANT_UNAVAILABLE_MESSAGE


class TestHealth:

    def test_root(self, client: TestClient):
        """Test health check endpoint."""
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestClaimsEndpoints:
    """Test claim lifecycle endpoints."""

    def test_create_claim(self, client: TestClient):
        """Test opening a new claim."""
        response = client.post("/claims")
        assert response.status_code == 201
        claim = response.json()
        assert claim["status"] == "data_gathering"
        assert len(claim["conversation_history"]) == 1
        assert claim["conversation_history"][0]["role"] == "assistant"

    def test_get_claim(self, client: TestClient, new_claim):
        response = client.get(f"/claims/{new_claim.id}")
        assert response.status_code == 200
        assert response.json()["id"] == new_claim.id

    def test_get_claim_not_found(self, client: TestClient):
        """Test getting non-existent claim fails."""
        response = client.get("/claims/does-not-exist")
        assert response.status_code == 404
        assert response.json()["detail"] == CLAIM_NOT_FOUND_MESSAGE

    def test_list_claims(self, client: TestClient, new_claim):
        response = client.get("/claims")
        assert response.status_code == 200
        assert [c["id"] for c in response.json()] == [new_claim.id]

        response = client.get("/claims", params={"status": "completed"})
        assert response.json() == []

    def test_list_claims_unknown_status(self, client: TestClient):
        response = client.get("/claims", params={"status": "lost"})
        assert response.status_code == 400

    def test_stats(self, client: TestClient, new_claim):
        response = client.get("/claims/stats")
        assert response.status_code == 200
        stats = response.json()
        assert stats["total_claims"] == 1
        assert stats["active_claims"] == 1
        assert stats["status_breakdown"]["data_gathering"] == 1
        assert stats["coverage_rate"] == 0


class TestMessageEndpoint:
    """Test sending driver messages."""

    def test_send_message(self, client: TestClient, new_claim, use_model):
        """Test a turn that saves a field and replies."""
        use_model(fake_model(
            tool_call("save_claim_data", {"location": "Highway 5, exit 12"}),
            "Thanks. What happened to your car?",
        ))
        response = client.post(
            f"/claims/{new_claim.id}/messages",
            json={"message": "I'm on Highway 5 at exit 12"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Thanks. What happened to your car?"
        assert body["status"] == "data_gathering"
        assert body["claim"]["location"] == "Highway 5, exit 12"
        assert len(body["claim"]["conversation_history"]) == 3
        assert body["notifications_created"] == 0

    def test_send_message_unknown_claim(self, client: TestClient, use_model):
        use_model(fake_model("unused"))
        response = client.post("/claims/nope/messages", json={"message": "Hello"})
        assert response.status_code == 404

    def test_send_empty_message(self, client: TestClient, new_claim, use_model):
        use_model(fake_model("unused"))
        response = client.post(f"/claims/{new_claim.id}/messages", json={"message": ""})
        assert response.status_code == 422

    def test_model_outage(self, client: TestClient, new_claim, use_model):
        """Test that a failed turn returns a driver-safe error and saves nothing."""
        use_model(FailingChatModel(messages=iter([])))
        response = client.post(f"/claims/{new_claim.id}/messages", json={"message": "Hello"})
        assert response.status_code == 502
        assert response.json()["detail"] == ASSISTANT_UNAVAILABLE_MESSAGE

        claim = client.get(f"/claims/{new_claim.id}").json()
        assert len(claim["conversation_history"]) == 1

    def test_services_and_notifications(self, client: TestClient, ready_claim, providers, use_model):
        use_model(fake_model(
            tool_call("record_coverage_decision", {
                "is_covered": True, "services_needed": ["tow_truck"], "user_confirmed": True,
            }),
            tool_call("arrange_services", {
                "services_to_arrange": [{"service_type": "tow_truck"}], "user_confirmed": True,
            }),
            "A tow truck from QuickTow is on the way.",
        ))
        response = client.post(
            f"/claims/{ready_claim.id}/messages",
            json={"message": "Yes, all correct. Please send a tow truck."},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "arranging_services"
        assert response.json()["notifications_created"] == 2

        services = client.get(f"/claims/{ready_claim.id}/services").json()
        assert [s["provider_name"] for s in services] == ["QuickTow"]
        assert services[0]["service_type"] == "tow_truck"

        notifications = client.get(f"/claims/{ready_claim.id}/notifications").json()
        assert sorted(n["type"] for n in notifications) == ["email", "sms"]

    def test_services_unknown_claim(self, client: TestClient):
        assert client.get("/claims/nope/services").status_code == 404
        assert client.get("/claims/nope/notifications").status_code == 404


class TestDirectoryEndpoints:

    def test_lookup_by_number(self, client: TestClient, policies):
        response = client.get("/policies/lookup", params={"policy_number": "POL-1001"})
        assert response.status_code == 200
        body = response.json()
        assert body["found"] is True
        assert body["single_match"] is True
        assert body["policies"][0]["holder_name"] == "Maria Lopez"
        assert body["policies"][0]["vehicle"] == "2019 Toyota Corolla"

    def test_lookup_by_name_ambiguous(self, client: TestClient, policies):
        body = client.get("/policies/lookup", params={"name": "carter"}).json()
        assert body["found"] is True
        assert body["single_match"] is False
        assert len(body["policies"]) == 2

    def test_lookup_requires_one_criterion(self, client: TestClient, policies):
        assert client.get("/policies/lookup").status_code == 400
        response = client.get("/policies/lookup", params={"name": "Maria", "phone": "+15550101"})
        assert response.status_code == 400

    def test_lookup_miss(self, client: TestClient, policies):
        body = client.get("/policies/lookup", params={"phone": "+10000000"}).json()
        assert body == {"found": False, "single_match": False, "policies": []}

    def test_providers(self, client: TestClient, providers):
        response = client.get("/providers", params={"service_type": "repair_truck"})
        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["Highway Recovery", "Mobile Mechanics"]

    def test_providers_unknown_service(self, client: TestClient):
        assert client.get("/providers", params={"service_type": "boat"}).status_code == 400


class TestWebSocket:

    def test_connect_and_ping(self, client: TestClient):
        with client.websocket_connect("/ws/claims") as ws:
            assert ws.receive_json()["type"] == "connected"
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_claim_channel(self, client: TestClient, new_claim):
        with client.websocket_connect(f"/ws/claims?channel=claim:{new_claim.id}") as ws:
            assert ws.receive_json()["channel"] == f"claim:{new_claim.id}"

    def test_unknown_channel_rejected(self, client: TestClient):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws/claims?channel=everything") as ws:
                ws.receive_json()
