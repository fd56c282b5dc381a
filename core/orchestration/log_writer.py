"""
Orchestration Log Writer

세션 종료 시 누적된 로그를 호스팅 Postgres(Supabase PostgREST)의
orchestration_logs 테이블에 1건으로 insert.
"""

import logging

import httpx

from core.config import settings
from core.http_client import post_json
from core.orchestration.schemas import OrchestrationLogRecord

logger = logging.getLogger(__name__)


class OrchestrationLogWriter:
    """PostgREST insert 전송기. 실패 시 로그만 남기고 False 반환."""

    def __init__(
        self,
        rest_url: str | None = None,
        table: str | None = None,
        *,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._rest_url = (rest_url or settings.supabase_rest_url).rstrip("/")
        self._table = table or settings.orchestration_log_table
        self._headers = headers if headers is not None else settings.supabase_headers
        self._transport = transport

    @property
    def insert_url(self) -> str:
        return f"{self._rest_url}/{self._table}"

    async def insert(self, record: OrchestrationLogRecord) -> bool:
        """로그 레코드 1건 insert"""
        headers = {**self._headers, "Prefer": "return=representation"}
        ok, status_code, text = await post_json(
            self.insert_url,
            [record.model_dump(mode="json")],
            headers=headers,
            timeout=settings.http_timeout,
            transport=self._transport,
        )
        if not ok:
            logger.error(
                "Error saving orchestration logs: idea_id=%s status=%s %s",
                record.idea_id, status_code, text[:200] if text else "",
            )
            return False
        logger.info(
            "Orchestration logs saved: idea_id=%s count=%d",
            record.idea_id, len(record.logs),
        )
        return True
