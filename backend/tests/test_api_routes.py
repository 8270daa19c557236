"""HTTP contract tests for the support chat API."""

from __future__ import annotations

import json
import unittest

from fastapi.testclient import TestClient
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from app.db.dependencies import get_db
from app.db.session import build_engine, build_session_factory
from app.main import app
from app.models.base import Base
from app.models.conversation import Conversation
from app.models.message import Message
from app.routers.chat import FALLBACK_REPLY, MODEL_ISSUE_ERROR
from app.services.completion import (
    CompletionGateway,
    CompletionProviderError,
    GenerationParams,
    ProviderAuthError,
    ProviderRateLimitError,
    build_candidates,
    get_completion_gateway,
)


class _StubProvider:
    def __init__(self) -> None:
        self.failing: dict[str, Exception] = {}
        self.calls: list[str] = []

    def complete(self, messages: list[dict[str, str]], *, model: str, params: GenerationParams) -> str:
        self.calls.append(model)
        if model in self.failing:
            raise self.failing[model]
        return f"Happy to help! ({model})"


class SupportChatApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = build_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)
        cls.SessionLocal = build_session_factory(cls.engine)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        with self.SessionLocal() as db:
            db.execute(delete(Message))
            db.execute(delete(Conversation))
            db.commit()

        self.provider = _StubProvider()
        gateway = CompletionGateway(self.provider, build_candidates(["primary-model", "backup-model"]))

        def _get_test_db():
            db: Session = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _get_test_db
        app.dependency_overrides[get_completion_gateway] = lambda: gateway
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _post(self, payload: dict):
        return self.client.post("/api/message", json=payload)

    def _message_rows(self, conversation_id: str) -> int:
        with self.SessionLocal() as db:
            return int(
                db.scalar(select(func.count(Message.id)).where(Message.conversation_id == conversation_id)) or 0
            )

    def test_health_reports_service_and_primary_model(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "ok")
        self.assertIn("service", body)
        self.assertEqual(body["model"], "primary-model")
        self.assertIn("timestamp", body)

    def test_post_message_success_payload(self) -> None:
        for text in ("a", "Do you take Apple Pay?", "y" * 1000):
            response = self._post({"message": text})

            self.assertEqual(response.status_code, 200)
            body = response.json()
            self.assertTrue(body["success"])
            self.assertTrue(body["isNewConversation"])
            self.assertEqual(body["modelUsed"], "primary-model")
            self.assertEqual(body["reply"], "Happy to help! (primary-model)")
            self.assertTrue(body["conversationId"])
            self.assertIn("timestamp", body)

    def test_empty_messages_are_rejected(self) -> None:
        for text in ("", "   "):
            response = self._post({"message": text})

            self.assertEqual(response.status_code, 400)
            body = response.json()
            self.assertFalse(body["success"])
            self.assertEqual(body["reason"], "empty")
            self.assertTrue(body["fallback"])
            self.assertEqual(body["reply"], FALLBACK_REPLY)
        self.assertEqual(self.provider.calls, [])

    def test_missing_message_is_rejected(self) -> None:
        for payload in ({}, {"message": 123}):
            response = self._post(payload)

            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["reason"], "missing")

    def test_unparseable_bodies_get_fallback_payload(self) -> None:
        for raw in (b"not json", b"[1, 2]", b""):
            response = self.client.post(
                "/api/message",
                content=raw,
                headers={"content-type": "application/json"},
            )

            self.assertEqual(response.status_code, 400)
            body = response.json()
            self.assertFalse(body["success"])
            self.assertEqual(body["reason"], "missing")
            self.assertTrue(body["fallback"])
            self.assertEqual(body["reply"], FALLBACK_REPLY)
        self.assertEqual(self.provider.calls, [])

    def test_too_long_message_reports_length(self) -> None:
        response = self._post({"message": "z" * 1001})

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["reason"], "tooLong")
        self.assertEqual(body["length"], 1001)
        self.assertEqual(body["code"], "validation_error")

    def test_unknown_conversation_id_is_not_reused(self) -> None:
        response = self._post({"message": "Hello", "conversationId": "ghost-id"})

        body = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertTrue(body["isNewConversation"])
        self.assertNotEqual(body["conversationId"], "ghost-id")
        self.assertEqual(self.client.get("/api/conversation/ghost-id").status_code, 404)

    def test_history_alternates_and_is_ordered(self) -> None:
        conversation_id = self._post({"message": "turn 0"}).json()["conversationId"]
        for idx in range(1, 3):
            body = self._post({"message": f"turn {idx}", "conversationId": conversation_id}).json()
            self.assertFalse(body["isNewConversation"])

        response = self.client.get(f"/api/conversation/{conversation_id}")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["conversationId"], conversation_id)
        self.assertEqual(body["messageCount"], 6)
        messages = body["messages"]
        self.assertEqual([m["sender"] for m in messages], ["user", "ai"] * 3)
        self.assertEqual([m["text"] for m in messages[::2]], ["turn 0", "turn 1", "turn 2"])
        created = [m["createdAt"] for m in messages]
        self.assertTrue(all(value.endswith(("Z", "+00:00")) for value in created))
        self.assertEqual(created, sorted(created))
        ids = [m["id"] for m in messages]
        self.assertEqual(ids, sorted(ids))

        again = self.client.get(f"/api/conversation/{conversation_id}").json()
        self.assertEqual(again["messages"], messages)

    def test_fallback_model_is_reported_and_reply_stored_once(self) -> None:
        self.provider.failing["primary-model"] = CompletionProviderError("decommissioned", status_code=400)

        body = self._post({"message": "Return policy?"}).json()

        self.assertEqual(body["modelUsed"], "backup-model")
        history = self.client.get(f"/api/conversation/{body['conversationId']}").json()
        self.assertEqual([m["sender"] for m in history["messages"]], ["user", "ai"])

    def test_gateway_failures_map_to_status_codes(self) -> None:
        cases = [
            (ProviderAuthError("bad key", status_code=401), 401, "gateway_auth_failed"),
            (ProviderRateLimitError("slow down", status_code=429), 429, "gateway_rate_limited"),
            (CompletionProviderError("server error", status_code=503), 500, "models_exhausted"),
        ]
        self.provider.failing["primary-model"] = CompletionProviderError("down", status_code=500)
        for last_error, status_code, code in cases:
            self.provider.failing["backup-model"] = last_error

            response = self._post({"message": "Hello"})

            self.assertEqual(response.status_code, status_code)
            body = response.json()
            self.assertFalse(body["success"])
            self.assertTrue(body["fallback"])
            self.assertEqual(body["code"], code)
            self.assertEqual(body["reply"], FALLBACK_REPLY)
            self.assertNotIn("reason", body)

    def test_model_issue_uses_policy_sample_answer(self) -> None:
        self.provider.failing["primary-model"] = CompletionProviderError("down", status_code=500)
        self.provider.failing["backup-model"] = CompletionProviderError("bad request", status_code=400)

        response = self._post({"message": "Hello"})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], MODEL_ISSUE_ERROR)

    def test_create_conversation_endpoint(self) -> None:
        response = self.client.post("/api/conversation")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "New conversation started")
        history = self.client.get(f"/api/conversation/{body['conversationId']}").json()
        self.assertEqual(history["messageCount"], 0)
        self.assertEqual(history["messages"], [])

    def test_export_is_downloadable_history(self) -> None:
        conversation_id = self._post({"message": "Export me"}).json()["conversationId"]

        response = self.client.get(f"/api/conversation/{conversation_id}/export")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.headers["content-disposition"],
            f'attachment; filename="conversation-{conversation_id}.json"',
        )
        payload = json.loads(response.text)
        self.assertNotIn("success", payload)
        history = self.client.get(f"/api/conversation/{conversation_id}").json()
        history.pop("success")
        self.assertEqual(payload, history)

    def test_export_unknown_conversation_is_404(self) -> None:
        self.assertEqual(self.client.get("/api/conversation/nope/export").status_code, 404)

    def test_delete_cascades_and_then_404s(self) -> None:
        conversation_id = self._post({"message": "Delete me"}).json()["conversationId"]
        self.assertEqual(self._message_rows(conversation_id), 2)

        response = self.client.delete(f"/api/conversation/{conversation_id}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True, "conversationId": conversation_id})
        self.assertEqual(self.client.get(f"/api/conversation/{conversation_id}").status_code, 404)
        self.assertEqual(self._message_rows(conversation_id), 0)
        self.assertEqual(self.client.delete(f"/api/conversation/{conversation_id}").status_code, 404)

    def test_list_conversations_newest_first_with_counts(self) -> None:
        first = self._post({"message": "one"}).json()["conversationId"]
        self._post({"message": "two", "conversationId": first})
        second = self.client.post("/api/conversation").json()["conversationId"]

        response = self.client.get("/api/conversations")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual([item["id"] for item in body["conversations"]], [second, first])
        self.assertEqual([item["messageCount"] for item in body["conversations"]], [0, 4])
        self.assertTrue(body["conversations"][0]["createdAt"].endswith(("Z", "+00:00")))
        self.assertIn("createdAt", body["conversations"][0])


if __name__ == "__main__":
    unittest.main()
