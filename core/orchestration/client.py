"""
Orchestrator Client

외부 Galuxium 백엔드의 오케스트레이션 스트림과 리포트 생성 API 호출.

- GET  {backend}/api/orchestrator?idea=...&user_id=...  (text/event-stream)
- POST {backend}/api/report/generate  {"idea_id": ...}  → {"uploads": {...}}
"""

import logging
from collections.abc import AsyncIterator

import httpx
from pydantic import ValidationError

from core.config import settings
from core.context import get_backend_headers
from core.http_client import parse_json_body, post_json, stream_sse
from core.orchestration.schemas import ReportUploads
from core.sse import SSEMessage

logger = logging.getLogger(__name__)


class OrchestratorClient:
    """
    오케스트레이터 스트림/리포트 클라이언트

    스트림 전송 오류(연결 실패, non-2xx, idle timeout)는 httpx.HTTPError로 전파되고,
    리포트 생성 실패는 None 반환 + 로그로 처리합니다.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        idle_timeout: float | None = None,
        request_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.galuxium_backend_url).rstrip("/")
        self._idle_timeout = idle_timeout or settings.orchestrator_idle_timeout
        self._request_timeout = request_timeout or settings.http_timeout
        self._transport = transport

    @property
    def stream_url(self) -> str:
        return f"{self._base_url}/{settings.orchestrator_path.lstrip('/')}"

    @property
    def report_url(self) -> str:
        return f"{self._base_url}/{settings.report_generate_path.lstrip('/')}"

    async def stream_events(self, idea: str, user_id: str) -> AsyncIterator[SSEMessage]:
        """
        오케스트레이션 스트림을 열고 SSEMessage를 순서대로 반환.

        연결은 이터레이터가 닫힐 때(aclose / async for 종료) 함께 닫힙니다.
        """
        stream = stream_sse(
            self.stream_url,
            params={"idea": idea, "user_id": user_id},
            headers=get_backend_headers(),
            timeout=httpx.Timeout(self._request_timeout, read=self._idle_timeout),
            transport=self._transport,
        )
        try:
            async for message in stream:
                yield message
        finally:
            await stream.aclose()

    async def generate_report(self, idea_id: str | None) -> ReportUploads | None:
        """
        리포트 생성 요청. 응답의 uploads를 반환 (실패 시 None).
        """
        ok, status_code, text = await post_json(
            self.report_url,
            {"idea_id": idea_id},
            headers=get_backend_headers(),
            timeout=self._request_timeout,
            transport=self._transport,
        )
        if not ok:
            logger.warning(
                "Report generation failed: idea_id=%s status=%s %s",
                idea_id, status_code, text[:200] if text else "",
            )
            return None

        body = parse_json_body(text)
        if body is None or not isinstance(body.get("uploads"), dict):
            logger.warning("Report generation returned no uploads: idea_id=%s", idea_id)
            return None
        try:
            uploads = ReportUploads.model_validate(body["uploads"])
        except ValidationError as e:
            logger.warning("Report uploads rejected: %s", e.errors(include_url=False))
            return None
        logger.info("Report generated: idea_id=%s logos=%d", idea_id, len(uploads.logos))
        return uploads
