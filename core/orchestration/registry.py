"""
Orchestration Session Registry

session_id별 세션 보관 + 사용자당 활성 세션 1개 보장.

- 새 세션 생성 시 사용자 generation을 증가시키고 이전 활성 세션은 취소
- 세션은 매 이벤트마다 is_current()로 자신이 최신 generation인지 확인
- 종료된 세션은 retention 시간 경과 후 정리 (in-memory, 인스턴스 간 공유 안 됨)
"""

import logging
import time

from core.chat.client import ChatClient
from core.config import settings
from core.orchestration.client import OrchestratorClient
from core.orchestration.log_writer import OrchestrationLogWriter
from core.orchestration.session import OrchestrationSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """in-memory 세션 저장소"""

    def __init__(
        self,
        *,
        client: OrchestratorClient | None = None,
        log_writer: OrchestrationLogWriter | None = None,
        chat_client: ChatClient | None = None,
        queue_size: int | None = None,
        retention_seconds: float | None = None,
        max_duration: float | None = None,
    ) -> None:
        self._client = client or OrchestratorClient()
        self._log_writer = log_writer or OrchestrationLogWriter()
        self._chat_client = chat_client or ChatClient()
        self._queue_size = queue_size
        self._retention_seconds = (
            settings.session_retention_seconds if retention_seconds is None else retention_seconds
        )
        self._max_duration = max_duration
        self._sessions: dict[str, OrchestrationSession] = {}
        self._active_by_user: dict[str, OrchestrationSession] = {}
        self._generations: dict[str, int] = {}

    def create(
        self,
        user_id: str,
        idea: str,
        *,
        conversation_id: str | None = None,
        model: str | None = None,
    ) -> OrchestrationSession:
        """
        새 세션 생성 (시작은 호출처에서 session.start()).

        같은 사용자의 이전 활성 세션은 취소됩니다.
        """
        self.prune()
        generation = self._generations.get(user_id, 0) + 1
        self._generations[user_id] = generation

        previous = self._active_by_user.get(user_id)
        if previous is not None and previous.is_active:
            previous.cancel("superseded by a newer session")

        session = OrchestrationSession(
            user_id,
            idea,
            client=self._client,
            log_writer=self._log_writer,
            chat_client=self._chat_client,
            generation=generation,
            conversation_id=conversation_id,
            model=model,
            is_current=self.is_current,
            queue_size=self._queue_size,
            max_duration=self._max_duration,
        )
        self._sessions[session.session_id] = session
        self._active_by_user[user_id] = session
        logger.info(
            "Session registered: session_id=%s user_id=%s generation=%d",
            session.session_id, user_id, generation,
        )
        return session

    def get(self, session_id: str) -> OrchestrationSession | None:
        return self._sessions.get(session_id)

    def active_for(self, user_id: str) -> OrchestrationSession | None:
        """사용자의 최신 세션 (종료 상태면 None)"""
        session = self._active_by_user.get(user_id)
        if session is None or not session.is_active:
            return None
        return session

    def is_current(self, session: OrchestrationSession) -> bool:
        """세션이 해당 사용자의 최신 generation인지"""
        return self._generations.get(session.user_id) == session.generation

    def prune(self) -> int:
        """retention이 지난 종료 세션 제거. 제거 개수 반환."""
        now = time.monotonic()
        expired = [
            sid for sid, s in self._sessions.items()
            if s.finished_monotonic is not None
            and now - s.finished_monotonic >= self._retention_seconds
        ]
        for sid in expired:
            session = self._sessions.pop(sid)
            if self._active_by_user.get(session.user_id) is session:
                del self._active_by_user[session.user_id]
        if expired:
            logger.info("session registry: pruned %d finished sessions", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)


_session_registry: SessionRegistry | None = None


def get_session_registry() -> SessionRegistry:
    """SessionRegistry 싱글톤"""
    global _session_registry
    if _session_registry is None:
        config = settings.session_config
        _session_registry = SessionRegistry(
            client=OrchestratorClient(idle_timeout=config["idle_timeout"]),
            queue_size=config["queue_size"],
            retention_seconds=config["retention_seconds"],
            max_duration=config["max_duration"],
        )
    return _session_registry
