"""
Galuxium Routes 통합 테스트

POST /galuxium/messages 분기(chat / founders)와 대화 생성, 세션 SSE 중계 순서, 스냅샷/취소, 인증.
대화 목록/삭제, 모델 목록, MVP 생성 스트림 중계.
외부 백엔드 호출은 의존성 override로 대체합니다.
"""

import asyncio
import json

import pytest

pytest.importorskip("jose")

from fastapi.testclient import TestClient

from conftest import FakeLogWriter, FakeOrchestratorClient
from api.dependencies import get_chat_client, get_classifier, get_mvp_client
from core.chat.client import ChatCompletionError, ChatMessage
from core.classification.classifier import Classification
from core.mvp.generator import EVENT_DONE, EVENT_FILE, EVENT_STARTED, MvpForm
from core.orchestration.registry import SessionRegistry, get_session_registry
from core.security.auth import create_token
from main import app


def _get_auth_headers(user_id: str = "test-user") -> dict[str, str]:
    """테스트용 JWT 헤더"""
    token = create_token(user_id=user_id, email=f"{user_id}@galuxium.test")
    return {"Authorization": f"Bearer {token}"}


def _parse_sse(body: str) -> list[tuple[str, object]]:
    """SSE 본문 → [(event, data)] (주석 블록은 제외, [DONE]은 ("done", None))"""
    events = []
    for block in body.split("\n\n"):
        event_type = "message"
        data_lines = []
        for line in block.splitlines():
            if line.startswith("event: "):
                event_type = line[len("event: "):]
            elif line.startswith("data: "):
                data_lines.append(line[len("data: "):])
        if not data_lines:
            continue
        data = "\n".join(data_lines)
        if data == "[DONE]":
            events.append(("done", None))
        else:
            events.append((event_type, json.loads(data)))
    return events


class FakeClassifier:
    def __init__(self, is_startup_idea: bool) -> None:
        self.is_startup_idea = is_startup_idea
        self.prompts: list[str] = []

    async def classify(self, text: str) -> Classification:
        self.prompts.append(text)
        return Classification(is_startup_idea=self.is_startup_idea, idea=text)


class FakeChatClient:
    def __init__(self, reply: str = "Hello from Galuxium", fail: bool = False) -> None:
        self.reply = reply
        self.fail = fail
        self.create_fails = False
        self.created: list[tuple] = []
        self.deleted: list[str] = []
        self.conversations: list[dict] | None = [{"id": "conv-1", "title": "hello"}]
        self.models: list[dict] | None = [{"id": "galuxium-lite"}]
        self.saved: list[ChatMessage] = []
        self.completions: list[tuple] = []

    async def complete(self, model, history, text) -> str:
        self.completions.append((model, history, text))
        if self.fail:
            raise ChatCompletionError("Chat call failed: 503")
        return self.reply

    async def save_message(self, message: ChatMessage) -> bool:
        self.saved.append(message)
        return True

    async def create_conversation(self, user_id, text, model) -> str | None:
        self.created.append((user_id, text, model))
        return None if self.create_fails else "conv-new"

    async def list_conversations(self, user_id) -> list[dict] | None:
        return self.conversations

    async def delete_conversation(self, conversation_id) -> bool:
        self.deleted.append(conversation_id)
        return conversation_id != "missing"

    async def list_models(self) -> list[dict] | None:
        return self.models


class FakeMvpClient:
    def __init__(self) -> None:
        self.calls: list[tuple[MvpForm, str]] = []

    async def generate(self, form: MvpForm, user_id: str):
        self.calls.append((form, user_id))
        yield EVENT_STARTED, {"project_name": form.resolved_project_name}
        yield EVENT_FILE, {"filename": "package.json", "count": 1}
        yield EVENT_DONE, {"project_name": form.resolved_project_name, "files": ["package.json"], "done": True}


class HangingClient(FakeOrchestratorClient):
    """이벤트 없이 계속 열려 있는 스트림"""

    async def stream_events(self, idea, user_id):
        self.stream_calls.append((idea, user_id))
        try:
            await asyncio.Event().wait()
            yield
        finally:
            self.closed = True


def _override(classifier, chat, registry) -> None:
    app.dependency_overrides[get_classifier] = lambda: classifier
    app.dependency_overrides[get_chat_client] = lambda: chat
    app.dependency_overrides[get_session_registry] = lambda: registry


@pytest.fixture
def chat_client():
    return FakeChatClient()


@pytest.fixture
def orchestrator(scenario_events):
    return FakeOrchestratorClient(scenario_events)


@pytest.fixture
def registry(orchestrator, chat_client):
    return SessionRegistry(
        client=orchestrator,
        log_writer=FakeLogWriter(),
        chat_client=chat_client,
    )


@pytest.fixture
def founders_client(registry, chat_client):
    _override(FakeClassifier(True), chat_client, registry)
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def chat_mode_client(registry, chat_client):
    _override(FakeClassifier(False), chat_client, registry)
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def test_health_is_public():
    with TestClient(app) as client:
        response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_messages_requires_auth(founders_client: TestClient):
    response = founders_client.post("/galuxium/messages", json={"message": "hi"})
    assert response.status_code == 401


def test_messages_rejects_invalid_token(founders_client: TestClient):
    response = founders_client.post(
        "/galuxium/messages",
        json={"message": "hi"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


def test_chat_mode_returns_reply_and_saves_messages(chat_mode_client: TestClient, chat_client: FakeChatClient):
    response = chat_mode_client.post(
        "/galuxium/messages",
        json={
            "message": "what is a cap table?",
            "conversation_id": "conv-1",
            "model": "galuxium-lite",
            "history": [{"role": "user", "content": "hi"}],
        },
        headers=_get_auth_headers(),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["mode"] == "chat"
    assert body["conversation_id"] == "conv-1"
    assert body["reply"] == "Hello from Galuxium"
    assert body["user_tokens"] == 5
    assert [m.role for m in chat_client.saved] == ["user", "assistant"]
    assert chat_client.saved[1].content == "Hello from Galuxium"
    assert chat_client.created == []
    model, history, text = chat_client.completions[0]
    assert model == "galuxium-lite"
    assert history[0].content == "hi"
    assert text == "what is a cap table?"


def test_chat_mode_without_conversation_creates_one(chat_mode_client: TestClient, chat_client: FakeChatClient):
    response = chat_mode_client.post(
        "/galuxium/messages",
        json={"message": "hello", "model": "galuxium-lite"},
        headers=_get_auth_headers(),
    )

    assert response.status_code == 200
    assert response.json()["conversation_id"] == "conv-new"
    assert chat_client.created == [("test-user", "hello", "galuxium-lite")]
    assert [m.conversation_id for m in chat_client.saved] == ["conv-new", "conv-new"]


def test_conversation_create_failure_is_502(founders_client: TestClient, chat_client: FakeChatClient, registry):
    chat_client.create_fails = True

    response = founders_client.post(
        "/galuxium/messages",
        json={"message": "AI tutor for kids"},
        headers=_get_auth_headers(),
    )

    assert response.status_code == 502
    assert chat_client.saved == []
    assert registry.active_for("test-user") is None


def test_chat_mode_backend_failure_is_502(chat_mode_client: TestClient, chat_client: FakeChatClient):
    chat_client.fail = True

    response = chat_mode_client.post(
        "/galuxium/messages",
        json={"message": "hello"},
        headers=_get_auth_headers(),
    )

    assert response.status_code == 502


def test_founders_mode_streams_session_events(
    founders_client: TestClient,
    orchestrator: FakeOrchestratorClient,
    chat_client: FakeChatClient,
):
    headers = _get_auth_headers()
    response = founders_client.post(
        "/galuxium/messages",
        json={"message": "AI tutor for kids", "conversation_id": "conv-9"},
        headers=headers,
    )

    assert response.status_code == 202
    started = response.json()
    assert started["mode"] == "founders"
    assert started["conversation_id"] == "conv-9"
    assert started["stream_path"] == f"/galuxium/sessions/{started['session_id']}/stream"

    stream = founders_client.get(started["stream_path"], headers=headers)
    assert stream.status_code == 200
    assert stream.headers["content-type"].startswith("text/event-stream")

    events = _parse_sse(stream.text)
    kinds = [kind for kind, _ in events]
    assert kinds[0] == "snapshot"
    assert kinds[-2:] == ["end", "done"]
    assert events[-2][1]["status"] == "finished"
    assert [data["agent"]["phase"] for kind, data in events if kind == "agent_update"] == [
        "BizMind", "BizMind", "CodeWeaver",
    ]
    assert "report" in kinds

    assert orchestrator.stream_calls == [("AI tutor for kids", "test-user")]
    assert orchestrator.report_calls == ["idea-1"]
    assert [m.role for m in chat_client.saved] == ["user", "assistant"]
    assert [m.conversation_id for m in chat_client.saved] == ["conv-9", "conv-9"]
    assert chat_client.saved[0].content == "AI tutor for kids"
    assert len(chat_client.saved[1].content) == 5

    snapshot = founders_client.get(f"/galuxium/sessions/{started['session_id']}", headers=headers)
    assert snapshot.status_code == 200
    body = snapshot.json()
    assert body["status"] == "finished"
    assert body["idea_id"] == "idea-1"
    assert body["log_count"] == 5
    assert len(body["agents"]) == 2

    cancel = founders_client.delete(f"/galuxium/sessions/{started['session_id']}", headers=headers)
    assert cancel.json() == {"session_id": started["session_id"], "cancelled": False, "status": "finished"}


def test_session_of_other_user_is_hidden(founders_client: TestClient):
    response = founders_client.post(
        "/galuxium/messages",
        json={"message": "AI tutor for kids"},
        headers=_get_auth_headers("owner"),
    )
    session_id = response.json()["session_id"]

    other = _get_auth_headers("intruder")
    assert founders_client.get(f"/galuxium/sessions/{session_id}", headers=other).status_code == 404
    assert founders_client.get(f"/galuxium/sessions/{session_id}/stream", headers=other).status_code == 404
    assert founders_client.delete(f"/galuxium/sessions/{session_id}", headers=other).status_code == 404


def test_unknown_session_is_404(founders_client: TestClient):
    response = founders_client.get("/galuxium/sessions/does-not-exist", headers=_get_auth_headers())
    assert response.status_code == 404


def test_cancel_running_session(chat_client: FakeChatClient):
    client_double = HangingClient([])
    registry = SessionRegistry(client=client_double, log_writer=FakeLogWriter(), chat_client=chat_client)
    _override(FakeClassifier(True), chat_client, registry)
    headers = _get_auth_headers()
    try:
        with TestClient(app) as client:
            started = client.post(
                "/galuxium/messages",
                json={"message": "drone delivery"},
                headers=headers,
            ).json()

            response = client.delete(f"/galuxium/sessions/{started['session_id']}", headers=headers)

            assert response.status_code == 200
            assert response.json()["cancelled"] is True
            assert response.json()["status"] == "cancelled"

            events = _parse_sse(client.get(started["stream_path"], headers=headers).text)
            assert events[-2][0] == "end"
            assert events[-2][1]["status"] == "cancelled"
    finally:
        app.dependency_overrides.clear()


def test_new_founders_message_supersedes_previous_session(chat_client: FakeChatClient):
    registry = SessionRegistry(client=HangingClient([]), log_writer=FakeLogWriter(), chat_client=chat_client)
    _override(FakeClassifier(True), chat_client, registry)
    headers = _get_auth_headers()
    try:
        with TestClient(app) as client:
            first = client.post("/galuxium/messages", json={"message": "idea one"}, headers=headers).json()
            second = client.post("/galuxium/messages", json={"message": "idea two"}, headers=headers).json()

            first_state = client.get(f"/galuxium/sessions/{first['session_id']}", headers=headers).json()
            second_state = client.get(f"/galuxium/sessions/{second['session_id']}", headers=headers).json()

            assert first_state["status"] == "cancelled"
            assert second_state["status"] in ("idle", "streaming")

            client.delete(f"/galuxium/sessions/{second['session_id']}", headers=headers)
    finally:
        app.dependency_overrides.clear()


def test_list_conversations(chat_mode_client: TestClient):
    response = chat_mode_client.get("/galuxium/conversations", headers=_get_auth_headers())

    assert response.status_code == 200
    assert response.json() == {"conversations": [{"id": "conv-1", "title": "hello"}]}


def test_list_conversations_backend_failure_is_502(chat_mode_client: TestClient, chat_client: FakeChatClient):
    chat_client.conversations = None

    response = chat_mode_client.get("/galuxium/conversations", headers=_get_auth_headers())

    assert response.status_code == 502


def test_delete_conversation(chat_mode_client: TestClient, chat_client: FakeChatClient):
    headers = _get_auth_headers()

    deleted = chat_mode_client.delete("/galuxium/conversations/conv-1", headers=headers)
    missing = chat_mode_client.delete("/galuxium/conversations/missing", headers=headers)

    assert deleted.status_code == 200
    assert deleted.json() == {"conversation_id": "conv-1", "deleted": True}
    assert missing.status_code == 502
    assert chat_client.deleted == ["conv-1", "missing"]


def test_list_models(chat_mode_client: TestClient, chat_client: FakeChatClient):
    response = chat_mode_client.get("/galuxium/models", headers=_get_auth_headers())

    assert response.status_code == 200
    assert response.json() == {"models": [{"id": "galuxium-lite"}]}

    chat_client.models = None
    assert chat_mode_client.get("/galuxium/models", headers=_get_auth_headers()).status_code == 502


def test_conversations_require_auth(chat_mode_client: TestClient):
    assert chat_mode_client.get("/galuxium/conversations").status_code == 401
    assert chat_mode_client.get("/galuxium/models").status_code == 401


def test_generate_mvp_streams_events(chat_mode_client: TestClient):
    mvp_client = FakeMvpClient()
    app.dependency_overrides[get_mvp_client] = lambda: mvp_client

    response = chat_mode_client.post(
        "/galuxium/mvps/generate",
        json={"idea": "AI Tutor for kids", "features": ["quiz"]},
        headers=_get_auth_headers(),
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _parse_sse(response.text)
    assert [kind for kind, _ in events] == ["started", "file", "done", "done"]
    assert events[0][1] == {"project_name": "ai-tutor-for"}
    assert events[-1] == ("done", None)
    form, user_id = mvp_client.calls[0]
    assert user_id == "test-user"
    assert form.features == ["quiz"]


def test_generate_mvp_rejects_empty_idea(chat_mode_client: TestClient):
    app.dependency_overrides[get_mvp_client] = lambda: FakeMvpClient()

    response = chat_mode_client.post(
        "/galuxium/mvps/generate",
        json={"idea": ""},
        headers=_get_auth_headers(),
    )

    assert response.status_code == 422
