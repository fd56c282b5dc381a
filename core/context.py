"""
Request-scoped context for async operations.

Galuxium 백엔드 호출 시 user/trace 헤더를 전달하기 위해
요청 스코프 컨텍스트를 제공합니다.
백그라운드 세션 태스크는 생성 시점의 컨텍스트를 복사해 그대로 사용합니다.
"""

from contextvars import ContextVar
from typing import Any

# 요청 스코프: user_id, auth_token, trace_id, conversation_id
_request_context: ContextVar[dict[str, Any]] = ContextVar(
    "request_context",
    default={},
)


def set_request_context(
    user_id: str,
    auth_token: str | None,
    trace_id: str | None = None,
    conversation_id: str | None = None,
    **extra: Any,
) -> None:
    """요청 컨텍스트 설정 (메시지 핸들러 시작 시 호출)"""
    ctx: dict[str, Any] = {
        "user_id": user_id,
        "auth_token": auth_token,
        "trace_id": trace_id,
        "conversation_id": conversation_id,
    }
    ctx.update(extra)
    _request_context.set(ctx)


def get_backend_headers() -> dict[str, str]:
    """
    Galuxium 백엔드 호출용 헤더 반환.

    X-User-ID, X-Trace-ID, Authorization(JWT) 포함.
    """
    ctx = _request_context.get()
    headers: dict[str, str] = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    if ctx.get("user_id"):
        headers["X-User-ID"] = ctx["user_id"]
    if ctx.get("trace_id"):
        headers["X-Trace-ID"] = ctx["trace_id"]
    if ctx.get("auth_token"):
        token = ctx["auth_token"]
        if not token.startswith("Bearer "):
            token = f"Bearer {token}"
        headers["Authorization"] = token
    return headers
