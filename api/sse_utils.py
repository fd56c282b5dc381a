"""
SSE(Server-Sent Events) 공통 유틸

대시보드로 세션 이벤트를 중계할 때 사용하는 헤더·포맷 헬퍼.
"""

import json
from typing import Any

# 스트리밍 응답에 공통으로 사용하는 헤더 (프록시·nginx 버퍼링 비활성화)
SSE_HEADERS = {
    "Content-Type": "text/event-stream; charset=utf-8",
    "Cache-Control": "no-cache, no-store",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# 연결 직후 전송하는 주석 줄 (클라이언트/프록시가 스트림을 인식하도록)
SSE_CONNECTED_LINE = ": connected\n\n"
SSE_DONE_LINE = "data: [DONE]\n\n"
SSE_KEEPALIVE_LINE = ": keepalive\n\n"


def format_sse_line(event_type: str, payload: dict[str, Any], event_id: int | None = None) -> str:
    """
    SSE 한 이벤트 형식: (id) + event + data (ensure_ascii=False).
    """
    prefix = f"id: {event_id}\n" if event_id is not None else ""
    return f"{prefix}event: {event_type}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n"
