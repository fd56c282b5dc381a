"""
공통 테스트 설정

core.config는 import 시점에 Settings를 만들기 때문에 환경 변수를 먼저 채웁니다.
"""

import os

os.environ.setdefault("JWT_SECRET", "test-secret-key-for-galuxium-gateway-0123456789")
os.environ.setdefault("GALUXIUM_BACKEND_URL", "http://backend.test")
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-key")
os.environ.setdefault("NOTIFICATIONS_REDIS_ENABLED", "false")

import json
from collections.abc import AsyncIterator
from typing import Any

import pytest

from core.orchestration.schemas import OrchestrationLogRecord, ReportUploads
from core.sse import SSEMessage

# BizMind 2건 + CodeWeaver 1건 + idea_id + done
SCENARIO_EVENTS: list[dict[str, Any]] = [
    {"phase": "BizMind", "message": "scanning market", "progress": 10},
    {"phase": "BizMind", "message": "found 3 competitors", "progress": 40},
    {"phase": "CodeWeaver", "message": "scaffolding files", "progress": 20},
    {"idea_id": "idea-1"},
    {"done": True},
]


def sse_body(events: list[dict[str, Any] | str]) -> bytes:
    """이벤트 목록 → text/event-stream 본문 (문자열은 data 그대로)"""
    chunks = []
    for ev in events:
        data = ev if isinstance(ev, str) else json.dumps(ev)
        chunks.append(f"data: {data}\n\n")
    return "".join(chunks).encode("utf-8")


class FakeOrchestratorClient:
    """stream_events / generate_report 호출을 기록하는 테스트 더블"""

    def __init__(
        self,
        events: list[dict[str, Any] | str],
        *,
        report: ReportUploads | None = None,
        stream_error: Exception | None = None,
    ) -> None:
        self.events = events
        self.report = report if report is not None else ReportUploads(pdf="https://cdn.test/r.pdf")
        self.stream_error = stream_error
        self.stream_calls: list[tuple[str, str]] = []
        self.report_calls: list[str | None] = []
        self.delivered = 0
        self.closed = False

    async def stream_events(self, idea: str, user_id: str) -> AsyncIterator[SSEMessage]:
        self.stream_calls.append((idea, user_id))
        try:
            for ev in self.events:
                data = ev if isinstance(ev, str) else json.dumps(ev)
                self.delivered += 1
                yield SSEMessage(data=data)
            if self.stream_error is not None:
                raise self.stream_error
        finally:
            self.closed = True

    async def generate_report(self, idea_id: str | None) -> ReportUploads | None:
        self.report_calls.append(idea_id)
        return self.report


class FakeLogWriter:
    """insert 호출을 기록하는 테스트 더블"""

    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.records: list[OrchestrationLogRecord] = []

    async def insert(self, record: OrchestrationLogRecord) -> bool:
        self.records.append(record)
        return self.ok


@pytest.fixture
def scenario_events() -> list[dict[str, Any]]:
    return [dict(ev) for ev in SCENARIO_EVENTS]
