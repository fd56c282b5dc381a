"""
공통 HTTP 클라이언트

Galuxium 백엔드·Supabase 호출 시 중복을 줄이기 위한 비동기 헬퍼.
- post_json / get_json: 재시도 없음, 호출처에서 결과 튜플로 성공 여부 판단
- stream_sse: text/event-stream GET을 SSEMessage 단위로 반환 (전송 오류는 httpx.HTTPError로 전파)
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from core.sse import SSEMessage, iter_sse_messages

logger = logging.getLogger(__name__)


async def post_json(
    url: str,
    json_body: Any,
    *,
    headers: dict[str, str] | None = None,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[bool, int, str]:
    """
    JSON POST 요청 수행.

    Returns:
        (성공 여부, status_code, response.text)
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.post(
                url,
                json=json_body,
                headers=headers or {},
            )
            return (200 <= resp.status_code < 400, resp.status_code, resp.text)
    except Exception as e:
        logger.warning("HTTP POST error: url=%s %s", url[:80], e)
        return (False, 0, str(e))


async def get_json(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[bool, int, str]:
    """
    GET 요청 수행.

    Returns:
        (성공 여부, status_code, response.text)
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.get(url, params=params, headers=headers or {})
            return (200 <= resp.status_code < 400, resp.status_code, resp.text)
    except Exception as e:
        logger.warning("HTTP GET error: url=%s %s", url[:80], e)
        return (False, 0, str(e))


def parse_json_body(text: str) -> dict[str, Any] | None:
    """응답 본문을 JSON 객체로 파싱 (객체가 아니거나 실패 시 None)"""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return data if isinstance(data, dict) else None


async def stream_sse(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: httpx.Timeout,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[SSEMessage]:
    """
    SSE 스트림 GET. non-2xx는 raise_for_status로 httpx.HTTPStatusError.

    연결은 이터레이터가 닫힐 때(aclose / async for 종료) 함께 닫힙니다.
    """
    request_headers = dict(headers or {})
    request_headers["Accept"] = "text/event-stream"
    request_headers.pop("Content-Type", None)

    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        async with client.stream("GET", url, params=params, headers=request_headers) as response:
            response.raise_for_status()
            logger.info(
                "SSE stream opened: url=%s content_type=%s",
                url[:80], response.headers.get("content-type"),
            )
            async for message in iter_sse_messages(response.aiter_lines()):
                yield message
