"""
Event Stream Aggregator

오케스트레이터 스트림 이벤트를 phase 단위로 병합하고, 수신 로그를 누적합니다.
I/O 없는 순수 상태 객체이며, 세션(OrchestrationSession)이 소유합니다.

처리 순서 (이벤트 1건):
1. JSON 파싱 + 스키마 검증. 실패 시 경고 로그 후 버림 (상태 변경 없음)
2. done 이후 이벤트는 무시
3. error 필드 → 알림 대상으로 반환, 로그/병합하지 않음 (스트림은 계속)
4. idea_id 최초 1회만 기록 (first-write-wins)
5. 정규화된 LogEntry 추가
6. phase 필드 → AgentOutput upsert (스칼라 필드 덮어쓰기, message 누적)
7. done: true → 종료 표시
"""

import json
import logging
from dataclasses import dataclass

from pydantic import ValidationError

from core.orchestration.schemas import AgentOutput, LogEntry, PhaseEvent

logger = logging.getLogger(__name__)

# AgentOutput에 직접 병합되는 스칼라 필드
_MERGE_FIELDS = ("sub_phase", "progress", "file_url")
# 병합 대상이 아닌 이벤트 제어 필드
_CONTROL_FIELDS = frozenset({"phase", "message", "idea_id", "done", "error"})


@dataclass
class AggregationResult:
    """이벤트 1건 처리 결과"""
    event: PhaseEvent
    error: str | None = None
    agent: AgentOutput | None = None
    idea_id_latched: bool = False
    done: bool = False


def parse_phase_event(raw: str) -> PhaseEvent | None:
    """
    SSE data 문자열 → PhaseEvent. 형식 오류는 None (경고 로그만).
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning("Stream parse error: %s data=%r", e, raw[:200] if isinstance(raw, str) else raw)
        return None
    if not isinstance(payload, dict):
        logger.warning("Stream payload is not an object: %r", raw[:200])
        return None
    try:
        return PhaseEvent.model_validate(payload)
    except ValidationError as e:
        logger.warning("Stream payload rejected: %s", e.errors(include_url=False))
        return None


class EventAggregator:
    """phase별 AgentOutput 집계 + 수신 로그 버퍼"""

    def __init__(self) -> None:
        self._agents: dict[str, AgentOutput] = {}
        self._logs: list[LogEntry] = []
        self.idea_id: str | None = None
        self.done = False

    @property
    def agents(self) -> list[AgentOutput]:
        """phase 최초 수신 순서의 AgentOutput 목록"""
        return list(self._agents.values())

    @property
    def logs(self) -> list[LogEntry]:
        return list(self._logs)

    def get_agent(self, phase: str) -> AgentOutput | None:
        return self._agents.get(phase)

    def apply(self, raw: str) -> AggregationResult | None:
        """
        SSE data 1건 처리.

        Returns:
            처리 결과. 형식 오류이거나 done 이후 이벤트면 None.
        """
        event = parse_phase_event(raw)
        if event is None:
            return None
        return self.apply_event(event)

    def apply_event(self, event: PhaseEvent) -> AggregationResult | None:
        """검증된 PhaseEvent 1건 처리"""
        if self.done:
            logger.debug("Event after done ignored: phase=%s", event.phase)
            return None

        if event.error:
            logger.warning("Orchestrator reported error: %s", event.error)
            return AggregationResult(event=event, error=event.error)

        result = AggregationResult(event=event)

        if event.idea_id and self.idea_id is None:
            self.idea_id = event.idea_id
            result.idea_id_latched = True
            logger.info("Captured idea_id from stream: %s", self.idea_id)

        self._logs.append(LogEntry.from_event(event))

        if event.phase:
            result.agent = self._upsert_agent(event)

        if event.done:
            self.done = True
            result.done = True

        return result

    def _upsert_agent(self, event: PhaseEvent) -> AgentOutput:
        phase = event.phase
        existing = self._agents.get(phase)
        extra = {k: v for k, v in event.extra_fields.items() if k not in _CONTROL_FIELDS}

        if existing is None:
            agent = AgentOutput(
                phase=phase,
                sub_phase=event.sub_phase,
                progress=event.progress,
                file_url=event.file_url,
                messages=[event.message] if event.message is not None else [],
                extra=extra,
            )
            self._agents[phase] = agent
            return agent.model_copy(deep=True)

        # 이벤트에 실제로 포함된 필드만 덮어쓰기 (shallow merge)
        for name in _MERGE_FIELDS:
            if name in event.model_fields_set:
                setattr(existing, name, getattr(event, name))
        existing.extra.update(extra)
        if event.message is not None:
            existing.messages.append(event.message)
        return existing.model_copy(deep=True)
