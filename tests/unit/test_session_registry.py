"""
SessionRegistry 단위 테스트 (사용자당 활성 세션 1개, generation, 정리)
"""

import asyncio
import json

import pytest

from conftest import FakeLogWriter, FakeOrchestratorClient
from core.config import settings
from core.orchestration.registry import SessionRegistry, get_session_registry
from core.orchestration.schemas import SessionStatus
from core.sse import SSEMessage


class GatedClient(FakeOrchestratorClient):
    """gate가 열릴 때까지 첫 이벤트 이후에서 대기하는 스트림"""

    def __init__(self, events) -> None:
        super().__init__(events)
        self.gate = asyncio.Event()
        self.waiting = asyncio.Event()

    async def stream_events(self, idea, user_id):
        self.stream_calls.append((idea, user_id))
        try:
            first, *rest = self.events
            yield SSEMessage(data=json.dumps(first))
            self.waiting.set()
            await self.gate.wait()
            for ev in rest:
                yield SSEMessage(data=json.dumps(ev))
        finally:
            self.closed = True


def _registry(client=None, **kwargs) -> SessionRegistry:
    return SessionRegistry(
        client=client or FakeOrchestratorClient([]),
        log_writer=FakeLogWriter(),
        **kwargs,
    )


def test_create_registers_session_with_generation():
    registry = _registry()

    session = registry.create("user-1", "idea A", conversation_id="conv-1", model="m")

    assert registry.get(session.session_id) is session
    assert registry.active_for("user-1") is session
    assert session.generation == 1
    assert session.conversation_id == "conv-1"
    assert session.status is SessionStatus.IDLE
    assert registry.is_current(session) is True
    assert len(registry) == 1


def test_new_session_supersedes_previous_for_same_user():
    registry = _registry()

    first = registry.create("user-1", "idea A")
    second = registry.create("user-1", "idea B")

    assert first.status is SessionStatus.CANCELLED
    assert registry.is_current(first) is False
    assert registry.is_current(second) is True
    assert second.generation == 2
    assert registry.active_for("user-1") is second


def test_sessions_of_different_users_are_independent():
    registry = _registry()

    a = registry.create("user-a", "idea A")
    b = registry.create("user-b", "idea B")

    assert a.status is SessionStatus.IDLE
    assert b.status is SessionStatus.IDLE
    assert registry.is_current(a) and registry.is_current(b)


def test_unknown_session_lookup():
    registry = _registry()
    assert registry.get("missing") is None
    assert registry.active_for("nobody") is None


def test_prune_removes_finished_sessions_after_retention():
    registry = _registry(retention_seconds=0)

    first = registry.create("user-1", "idea A")
    second = registry.create("user-1", "idea B")

    assert registry.prune() == 1
    assert registry.get(first.session_id) is None
    assert registry.get(second.session_id) is second
    assert registry.active_for("user-1") is second


def test_prune_keeps_sessions_within_retention():
    registry = _registry(retention_seconds=600)

    first = registry.create("user-1", "idea A")
    registry.create("user-1", "idea B")

    assert registry.prune() == 0
    assert registry.get(first.session_id) is first


@pytest.mark.asyncio
async def test_running_session_is_cancelled_by_newer_one():
    client = GatedClient([{"phase": "BizMind", "message": "m"}, {"done": True}])
    registry = _registry(client)

    first = registry.create("user-1", "idea A")
    task = first.start()
    await asyncio.wait_for(client.waiting.wait(), timeout=1.0)

    second = registry.create("user-1", "idea B")
    await asyncio.gather(task, return_exceptions=True)

    assert first.status is SessionStatus.CANCELLED
    assert first.finalized is False
    assert client.closed is True
    assert registry.active_for("user-1") is second


@pytest.mark.asyncio
async def test_finished_session_is_no_longer_active(scenario_events):
    registry = _registry(FakeOrchestratorClient(scenario_events))

    session = registry.create("user-1", "idea A")
    await session.start()

    assert session.status is SessionStatus.FINISHED
    assert registry.active_for("user-1") is None
    assert registry.get(session.session_id) is session


def test_get_session_registry_is_singleton():
    assert get_session_registry() is get_session_registry()


def test_get_session_registry_uses_configured_idle_timeout():
    registry = get_session_registry()

    assert registry._client._idle_timeout == settings.session_config["idle_timeout"]
