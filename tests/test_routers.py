from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient

from simbot.config import settings
from simbot.database import get_db
from simbot.main import app
from simbot.services import conversation_service

CONV = "525512345678"


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def whatsapp_payload(message):
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "1",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"phone_number_id": "phone-id", "display_phone_number": "5255"},
                            "messages": [message] if message else [],
                        },
                    }
                ],
            }
        ],
    }


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_db_check(self, client):
        body = client.get("/db-check").json()
        assert body == {"status": "ok", "conversations": 0, "messages": 0}


class TestWhatsAppWebhook:
    def test_verification(self, client, monkeypatch):
        monkeypatch.setattr(settings, "whatsapp_verify_token", "verify-me")
        response = client.get(
            "/api/chat/whatsapp",
            params={"hub.mode": "subscribe", "hub.challenge": "12345", "hub.verify_token": "verify-me"},
        )
        assert response.status_code == 200
        assert response.text == "12345"

    def test_verification_wrong_token(self, client, monkeypatch):
        monkeypatch.setattr(settings, "whatsapp_verify_token", "verify-me")
        response = client.get(
            "/api/chat/whatsapp",
            params={"hub.mode": "subscribe", "hub.challenge": "12345", "hub.verify_token": "nope"},
        )
        assert response.status_code == 403

    def test_text_message_is_buffered(self, client):
        buffer = Mock()
        buffer.add_message.return_value = 2
        with patch("simbot.routers.chat.get_message_buffer", return_value=buffer):
            response = client.post(
                "/api/chat/whatsapp",
                json=whatsapp_payload({"from": "5215512345678", "type": "text", "text": {"body": "hola"}}),
            )

        assert response.status_code == 202
        assert response.json() == {"status": "accepted", "message": "Message buffered", "buffered_messages": 2}
        buffer.add_message.assert_called_once_with(CONV, "hola", "phone-id")

    def test_non_text_message_is_ignored(self, client):
        buffer = Mock()
        with patch("simbot.routers.chat.get_message_buffer", return_value=buffer):
            response = client.post(
                "/api/chat/whatsapp",
                json=whatsapp_payload({"from": "5215512345678", "type": "image", "image": {"id": "x"}}),
            )
        assert response.status_code == 202
        assert response.json()["status"] == "ignored"
        buffer.add_message.assert_not_called()

    def test_status_callback_is_ignored(self, client):
        response = client.post("/api/chat/whatsapp", json=whatsapp_payload(None))
        assert response.status_code == 202
        assert response.json()["status"] == "ignored"

    def test_invalid_payload(self, client):
        response = client.post("/api/chat/whatsapp", content="not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400

    def test_ask_runs_turn_synchronously(self, client):
        with patch("simbot.routers.chat.process_turn", return_value="Hola") as mock_turn:
            response = client.get("/api/chat/ask", params={"message": "hola", "phone_number": CONV})
        assert response.json() == {"response": "Hola"}
        assert mock_turn.call_args.args[1:] == ("hola", CONV)


class TestConversationEndpoints:
    def test_state_roundtrip(self, client):
        assert client.get(f"/api/conversations/{CONV}/state").json()["state"] == "INITIAL"

        response = client.post(f"/api/conversations/{CONV}/state", json={"state": "CUSTOMER_REGISTRATION"})
        assert response.status_code == 200
        assert response.json()["updated"] is True
        assert client.get(f"/api/conversations/{CONV}/state").json()["state"] == "CUSTOMER_REGISTRATION"

    def test_unknown_state(self, client):
        response = client.post(f"/api/conversations/{CONV}/state", json={"state": "FLYING"})
        assert response.status_code == 400

    def test_rejected_transition(self, client):
        client.post(f"/api/conversations/{CONV}/state", json={"state": "COMPLETED"})
        response = client.post(f"/api/conversations/{CONV}/state", json={"state": "PAYMENT_PENDING"})
        assert response.status_code == 409

    def test_context(self, client):
        response = client.post(f"/api/conversations/{CONV}/context", json={"key": "customer_id", "value": 42})
        assert response.json()["context"] == {"customer_id": 42}
        assert client.get(f"/api/conversations/{CONV}/context").json()["context"] == {"customer_id": 42}

    def test_context_of_missing_conversation(self, client):
        assert client.get("/api/conversations/unknown/context").status_code == 404

    def test_stats_and_reset(self, client, session_factory):
        client.post(f"/api/conversations/{CONV}/context", json={"key": "customer_id", "value": 42})
        stats = client.get(f"/api/conversations/{CONV}/stats").json()
        assert stats["conversationId"] == CONV
        assert stats["messageCount"] == 0

        assert client.delete(f"/api/conversations/{CONV}").json() == {"conversation_id": CONV, "reset": True}
        session = session_factory()
        try:
            assert conversation_service.get_all_context_data(session, CONV) == {}
        finally:
            session.close()


class TestDocumentEndpoints:
    def test_create(self, client):
        stored = {"document_id": "doc-1", "content": "Cobertura", "metadata": {"documentId": "doc-1"}}
        with patch("simbot.routers.documents.knowledge_service.store_document", return_value=stored):
            response = client.post("/api/documents", json={"content": "Cobertura"})
        assert response.status_code == 201
        assert response.json()["documentId"] == "doc-1"
        assert response.json()["success"] is True

    def test_update(self, client):
        updated = {"document_id": "doc-1", "content": "Nuevo", "metadata": {}}
        with patch("simbot.routers.documents.knowledge_service.update_document", return_value=updated) as mock_update:
            response = client.put("/api/documents", json={"documentId": "doc-1", "content": "Nuevo"})
        assert response.status_code == 200
        mock_update.assert_called_once_with("doc-1", "Nuevo", None)

    def test_delete_store_failure(self, client):
        from simbot.services.knowledge_service import KnowledgeStoreError

        with patch(
            "simbot.routers.documents.knowledge_service.delete_document", side_effect=KnowledgeStoreError("down")
        ):
            response = client.delete("/api/documents/doc-1")
        assert response.status_code == 502

    def test_empty_content_rejected(self, client):
        assert client.post("/api/documents", json={"content": ""}).status_code == 422


class TestAdminEndpoints:
    def test_token_not_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_token", None)
        assert client.post("/admin/cleanup").status_code == 500

    def test_invalid_token(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_token", "secret")
        assert client.post("/admin/cleanup", headers={"X-Admin-Token": "wrong"}).status_code == 401

    def test_cleanup(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_token", "secret")
        response = client.post("/admin/cleanup", headers={"X-Admin-Token": "secret"})
        assert response.json() == {"status": "ok", "cleaned": 0}

    def test_stats(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_token", "secret")
        body = client.get("/admin/cleanup/stats", headers={"X-Admin-Token": "secret"}).json()
        assert body["total_old_conversations"] == 0
        assert body["retention_days"] == settings.retention_days

    def test_single_cleanup(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_token", "secret")
        client.post(f"/api/conversations/{CONV}/context", json={"key": "customer_email", "value": "ana@example.com"})

        response = client.post(f"/admin/cleanup/{CONV}", headers={"X-Admin-Token": "secret"})

        assert response.json()["cleaned"] is True
        context = client.get(f"/api/conversations/{CONV}/context").json()["context"]
        assert "customer_email" not in context
        assert "_cleaned_at" in context

    def test_single_cleanup_missing(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_token", "secret")
        assert client.post("/admin/cleanup/unknown", headers={"X-Admin-Token": "secret"}).status_code == 404
