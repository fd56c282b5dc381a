"""
Orchestration Module

founders mode 멀티 에이전트 오케스트레이션 스트림 소비/집계/마무리.
외부 Galuxium 백엔드 SSE → EventAggregator → 대시보드 SSE 중계.
"""

from core.orchestration.aggregator import (
    AggregationResult,
    EventAggregator,
    parse_phase_event,
)
from core.orchestration.client import OrchestratorClient
from core.orchestration.log_writer import OrchestrationLogWriter
from core.orchestration.registry import SessionRegistry, get_session_registry
from core.orchestration.schemas import (
    AgentOutput,
    LogEntry,
    OrchestrationLogRecord,
    PhaseEvent,
    ReportUploads,
    SessionSnapshot,
    SessionStatus,
)
from core.orchestration.session import OrchestrationSession
from core.sse import SSEDecoder, SSEMessage, iter_sse_messages

__all__ = [
    "AgentOutput",
    "AggregationResult",
    "EventAggregator",
    "LogEntry",
    "OrchestrationLogRecord",
    "OrchestrationLogWriter",
    "OrchestrationSession",
    "OrchestratorClient",
    "PhaseEvent",
    "ReportUploads",
    "SSEDecoder",
    "SSEMessage",
    "SessionRegistry",
    "SessionSnapshot",
    "SessionStatus",
    "get_session_registry",
    "iter_sse_messages",
    "parse_phase_event",
]
