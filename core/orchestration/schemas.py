"""
Orchestration Schemas

멀티 에이전트 오케스트레이션 스트림의 이벤트/집계 모델.

- PhaseEvent: 외부 오케스트레이터가 SSE data로 보내는 이벤트 (경계에서 검증)
- AgentOutput: phase별 집계 상태 (phase 당 최대 1개)
- LogEntry: 수신 이벤트 1건당 1개, 도착 순서대로 누적 후 일괄 저장
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def coerce_optional_str(v: Any) -> Any:
    """
    백엔드가 idea_id 등을 숫자/UUID로 보낼 때 str로 변환.
    None은 그대로 반환.
    """
    if v is None:
        return None
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


class SessionStatus(str, Enum):
    """오케스트레이션 세션 상태"""
    IDLE = "idle"
    STREAMING = "streaming"
    FINISHED = "finished"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.FINISHED, SessionStatus.FAILED, SessionStatus.CANCELLED)


class PhaseEvent(BaseModel):
    """오케스트레이터 스트림 이벤트 (SSE data 1건)"""

    model_config = ConfigDict(extra="allow")

    phase: str | None = Field(default=None, description="파이프라인 단계 이름 (예: BizMind)")
    sub_phase: str | None = Field(default=None, description="단계 내 세부 단계")
    message: str | None = Field(default=None, description="진행 메시지")
    progress: int | float | None = Field(default=None, description="진행률 (0~100)")
    file_url: str | None = Field(default=None, description="단계 산출물 URL")
    idea_id: str | None = Field(default=None, description="백엔드가 부여한 아이디어 ID")
    done: bool = Field(default=False, description="오케스트레이션 종료 플래그")
    error: str | None = Field(default=None, description="애플리케이션 레벨 에러 메시지")

    @field_validator("idea_id", mode="before")
    @classmethod
    def coerce_idea_id(cls, v: Any) -> Any:
        return coerce_optional_str(v)

    @field_validator("done", mode="before")
    @classmethod
    def coerce_done(cls, v: Any) -> Any:
        """done: null → False"""
        return False if v is None else v

    @property
    def extra_fields(self) -> dict[str, Any]:
        """스키마 밖의 추가 필드 (AgentOutput.extra로 병합)"""
        return dict(self.model_extra or {})


class AgentOutput(BaseModel):
    """phase별 집계 상태 (첫 이벤트에서 생성, 이후 병합)"""

    phase: str
    sub_phase: str | None = None
    progress: int | float | None = None
    file_url: str | None = None
    messages: list[str] = Field(default_factory=list, description="append-only 메시지 이력")
    extra: dict[str, Any] = Field(default_factory=dict, description="스키마 밖 필드 (마지막 값 우선)")


class LogEntry(BaseModel):
    """정규화된 이벤트 로그 1건"""

    timestamp: str = Field(default_factory=_utcnow_iso)
    phase: str = "unknown"
    sub_phase: str | None = None
    message: str = ""
    progress: int | float = 0
    file_url: str | None = None

    @classmethod
    def from_event(cls, event: PhaseEvent) -> "LogEntry":
        """PhaseEvent → LogEntry (누락 필드는 기본값으로 정규화)"""
        return cls(
            phase=event.phase or "unknown",
            sub_phase=event.sub_phase or None,
            message=event.message or "",
            progress=event.progress or 0,
            file_url=event.file_url or None,
        )


class ReportUploads(BaseModel):
    """리포트 생성 결과 (문서, 슬라이드, 팔레트, 로고)"""

    model_config = ConfigDict(extra="allow")

    pdf: str | None = None
    pptx: str | None = None
    palette: str | None = None
    logos: list[str] = Field(default_factory=list)

    @field_validator("logos", mode="before")
    @classmethod
    def coerce_logos(cls, v: Any) -> Any:
        """logos: null → []"""
        return [] if v is None else v


class OrchestrationLogRecord(BaseModel):
    """세션 종료 시 1회 저장되는 로그 레코드"""

    user_id: str
    idea_id: str | None = None
    logs: list[LogEntry] = Field(default_factory=list)
    created_at: str = Field(default_factory=_utcnow_iso)


class SessionSnapshot(BaseModel):
    """대시보드 조회용 세션 스냅샷"""

    session_id: str
    user_id: str
    idea: str
    status: SessionStatus
    idea_id: str | None = None
    agents: list[AgentOutput] = Field(default_factory=list, description="phase 최초 수신 순서")
    log_count: int = 0
    report: ReportUploads | None = None
    errors: list[str] = Field(default_factory=list)
    created_at: str
    finished_at: str | None = None
