"""
Orchestration Session

founders mode 1회 실행(스트림 open → done/에러)을 명시적인 세션 객체로 관리합니다.

상태: idle → streaming → finished | failed | cancelled (종료 상태는 재시작 불가)

- 스트림 이벤트를 EventAggregator에 순서대로 적용하고 대시보드용 이벤트를 큐에 적재
- done 수신 시 스트림을 닫고 finalization 1회 실행: 로그 저장 → 리포트 생성 → 대화 메시지 저장
- 전송 오류 / idle timeout / 최대 실행 시간 초과 / done 없이 스트림 종료 → failed (재시도 없음)
- finalization 단계 실패는 errors에 기록하고 알림만 보냄 (세션은 finished 유지)
- 매 이벤트마다 registry generation 확인: 새 세션에 밀린 세션은 더 이상 상태를 쓰지 않음
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import httpx

from core.chat.client import ChatClient, ChatMessage
from core.config import settings
from core.notifications import (
    NOTIFICATION_CATEGORY_FINALIZATION,
    NOTIFICATION_CATEGORY_ORCHESTRATION,
    NOTIFICATION_CATEGORY_STREAM_ERROR,
    build_notification_payload,
    publish_notification,
)
from core.orchestration.aggregator import AggregationResult, EventAggregator
from core.orchestration.client import OrchestratorClient
from core.orchestration.log_writer import OrchestrationLogWriter
from core.orchestration.schemas import (
    OrchestrationLogRecord,
    ReportUploads,
    SessionSnapshot,
    SessionStatus,
)
from core.sse import DEFAULT_EVENT_TYPE

logger = logging.getLogger(__name__)

# 대시보드 스트림 페이로드 스키마 버전
STREAM_EVENT_VERSION = "1.0"

# 대시보드 스트림 이벤트 타입
EVENT_STATUS = "status"
EVENT_AGENT_UPDATE = "agent_update"
EVENT_IDEA = "idea"
EVENT_NOTIFICATION = "notification"
EVENT_REPORT = "report"
EVENT_END = "end"

SessionEvent = tuple[str, dict[str, Any]]

# Redis 알림 발행 태스크 참조 보관 (완료 시 제거)
_background_tasks: set[asyncio.Task] = set()


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class OrchestrationSession:
    """founders mode 세션 1건 (상태 + 집계 + 대시보드 이벤트 큐)"""

    def __init__(
        self,
        user_id: str,
        idea: str,
        *,
        client: OrchestratorClient,
        log_writer: OrchestrationLogWriter,
        chat_client: ChatClient | None = None,
        session_id: str | None = None,
        generation: int = 1,
        conversation_id: str | None = None,
        model: str | None = None,
        is_current: Callable[["OrchestrationSession"], bool] | None = None,
        queue_size: int | None = None,
        max_duration: float | None = None,
    ) -> None:
        self.session_id = session_id or str(uuid.uuid4())
        self.user_id = user_id
        self.idea = idea
        self.generation = generation
        self.conversation_id = conversation_id
        self.model = model

        self.aggregator = EventAggregator()
        self.status = SessionStatus.IDLE
        self.report: ReportUploads | None = None
        self.errors: list[str] = []
        self.created_at = _utcnow_iso()
        self.finished_at: str | None = None
        self.finished_monotonic: float | None = None

        self._client = client
        self._log_writer = log_writer
        self._chat_client = chat_client
        self._is_current = is_current or (lambda _session: True)
        self._max_duration = max_duration or settings.orchestrator_max_duration
        self._queue: asyncio.Queue[SessionEvent] = asyncio.Queue(
            maxsize=queue_size or settings.session_queue_size
        )
        self._task: asyncio.Task | None = None
        self._finalized = False
        self._end_sent = False

    # ------------------------------------------------------------------ lifecycle

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal

    @property
    def finalized(self) -> bool:
        return self._finalized

    def start(self) -> asyncio.Task:
        """백그라운드 태스크로 run() 시작"""
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name=f"orchestration-{self.session_id}")
        return self._task

    async def run(self) -> None:
        """스트림 소비부터 finalization까지 세션 1회 실행"""
        if self.status is not SessionStatus.IDLE:
            raise RuntimeError(f"Session {self.session_id} already started (status={self.status.value})")

        self._set_status(SessionStatus.STREAMING)
        self._notify(NOTIFICATION_CATEGORY_ORCHESTRATION, "Initializing Galuxium Multi-Agent Orchestration...")
        logger.info(
            "Orchestration session started: session_id=%s user_id=%s generation=%d",
            self.session_id, self.user_id, self.generation,
        )

        try:
            try:
                await asyncio.wait_for(self._consume(), timeout=self._max_duration)
            except asyncio.TimeoutError:
                self._fail(f"Orchestration did not complete within {self._max_duration:.0f}s")
            except httpx.TimeoutException as e:
                self._fail(f"Orchestration stream idle timeout: {e}")
            except httpx.HTTPError as e:
                self._fail(f"SSE connection failed: {e}")
            except Exception as e:
                logger.exception("Unexpected orchestration stream error: session_id=%s", self.session_id)
                self._fail(f"Orchestration stream error: {e}")

            if self.aggregator.done and self.status is SessionStatus.STREAMING:
                self._set_status(SessionStatus.FINISHED)
                self._notify(NOTIFICATION_CATEGORY_ORCHESTRATION, "All Galuxium Agents completed!")
                try:
                    await self._finalize()
                except Exception as e:
                    logger.exception("Finalization aborted: session_id=%s", self.session_id)
                    self._record_error(f"Finalization aborted: {e}")
            elif not self.status.is_terminal:
                self._fail("Orchestration stream closed before completion")
        except asyncio.CancelledError:
            if not self.status.is_terminal:
                self._set_status(SessionStatus.CANCELLED, reason="cancelled")
            raise
        finally:
            self._send_end()
            logger.info(
                "Orchestration session ended: session_id=%s status=%s logs=%d",
                self.session_id, self.status.value, len(self.aggregator.logs),
            )

    def cancel(self, reason: str = "cancelled by user") -> bool:
        """
        세션 취소 (스트림 handle 닫기).

        Returns:
            취소 여부 (이미 종료 상태면 False)
        """
        if self.status.is_terminal:
            return False
        self._set_status(SessionStatus.CANCELLED, reason=reason)
        logger.info("Orchestration session cancelled: session_id=%s reason=%s", self.session_id, reason)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        # 시작 전에 취소된 태스크는 run()의 finally를 거치지 않음
        self._send_end()
        return True

    # ------------------------------------------------------------------ stream

    async def _consume(self) -> None:
        stream = self._client.stream_events(self.idea, self.user_id)
        try:
            async for message in stream:
                if message.event != DEFAULT_EVENT_TYPE:
                    logger.debug("Ignoring named SSE event: %s", message.event)
                    continue
                if not self._handle_data(message.data):
                    break
        finally:
            await stream.aclose()

    def _handle_data(self, data: str) -> bool:
        """
        SSE data 1건 처리.

        Returns:
            계속 읽을지 여부 (done / 세션 무효화 시 False)
        """
        if self.status is not SessionStatus.STREAMING:
            return False
        if not self._is_current(self):
            logger.warning(
                "Stale session dropped event: session_id=%s generation=%d",
                self.session_id, self.generation,
            )
            self._set_status(SessionStatus.CANCELLED, reason="superseded by a newer session")
            return False

        result = self.aggregator.apply(data)
        if result is None:
            return not self.aggregator.done
        self._publish_result(result)
        return not result.done

    def _publish_result(self, result: AggregationResult) -> None:
        if result.error:
            self._notify(NOTIFICATION_CATEGORY_STREAM_ERROR, result.error)
            return
        if result.idea_id_latched:
            self._publish(EVENT_IDEA, {"idea_id": self.aggregator.idea_id})
        if result.agent is not None:
            self._publish(EVENT_AGENT_UPDATE, {"agent": result.agent.model_dump(mode="json")})

    # ------------------------------------------------------------------ finalization

    async def _finalize(self) -> None:
        """done 이후 1회: 로그 저장 → 리포트 생성 → 대화 메시지 저장"""
        if self._finalized:
            return
        self._finalized = True

        idea_id = self.aggregator.idea_id
        logs = self.aggregator.logs
        record = OrchestrationLogRecord(user_id=self.user_id, idea_id=idea_id, logs=logs)
        if not await self._log_writer.insert(record):
            self._record_error("Failed to save orchestration logs")

        report = await self._client.generate_report(idea_id)
        if report is None:
            self._record_error("Report generation failed")
        else:
            self.report = report
            self._publish(EVENT_REPORT, {"idea_id": idea_id, "uploads": report.model_dump(mode="json")})

        if self._chat_client is not None and self.conversation_id:
            message = ChatMessage(
                id=str(uuid.uuid4()),
                conversation_id=self.conversation_id,
                user_id=self.user_id,
                role="assistant",
                content=[entry.model_dump(mode="json") for entry in logs],
                model_used=self.model,
            )
            if not await self._chat_client.save_message(message):
                self._record_error("Failed to save assistant message")

    def _record_error(self, message: str) -> None:
        self.errors.append(message)
        logger.error("Finalization step failed: session_id=%s %s", self.session_id, message)
        self._notify(NOTIFICATION_CATEGORY_FINALIZATION, message)

    # ------------------------------------------------------------------ state / events

    def _set_status(self, status: SessionStatus, reason: str | None = None) -> None:
        self.status = status
        if status.is_terminal:
            self.finished_at = _utcnow_iso()
            self.finished_monotonic = time.monotonic()
        payload: dict[str, Any] = {"status": status.value}
        if reason:
            payload["reason"] = reason
        self._publish(EVENT_STATUS, payload)

    def _fail(self, reason: str) -> None:
        if self.status.is_terminal:
            return
        logger.error("Orchestration session failed: session_id=%s %s", self.session_id, reason)
        self.errors.append(reason)
        self._set_status(SessionStatus.FAILED, reason=reason)

    def _notify(self, category: str, message: str) -> None:
        payload = build_notification_payload(
            category,
            message,
            session_id=self.session_id,
        )
        self._publish(EVENT_NOTIFICATION, payload)
        if settings.notifications_redis_enabled:
            task = asyncio.create_task(publish_notification(payload))
            _background_tasks.add(task)
            task.add_done_callback(_background_tasks.discard)

    def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        """대시보드 이벤트 적재 (non-blocking, 가득 차면 drop)"""
        body = {"version": STREAM_EVENT_VERSION, "session_id": self.session_id, **payload}
        try:
            self._queue.put_nowait((event_type, body))
        except asyncio.QueueFull:
            logger.warning("Session %s event queue full, dropping event %s", self.session_id, event_type)

    def _send_end(self) -> None:
        if self._end_sent:
            return
        self._end_sent = True
        self._publish(EVENT_END, {"status": self.status.value})

    async def get_event(self, timeout: float = 300.0) -> SessionEvent | None:
        """대시보드 이벤트 1건 조회 (timeout 초 대기, 없으면 None)"""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def snapshot(self) -> SessionSnapshot:
        """현재 세션 상태 스냅샷"""
        return SessionSnapshot(
            session_id=self.session_id,
            user_id=self.user_id,
            idea=self.idea,
            status=self.status,
            idea_id=self.aggregator.idea_id,
            agents=self.aggregator.agents,
            log_count=len(self.aggregator.logs),
            report=self.report,
            errors=list(self.errors),
            created_at=self.created_at,
            finished_at=self.finished_at,
        )
