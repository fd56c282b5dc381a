"""
API Middleware Module

FastAPI 미들웨어를 구현합니다.
- JWT 인증
- 로깅 (raw ASGI: SSE 스트림 본문을 건드리지 않음)
- 예외 처리
"""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from core.config import settings
from core.security.auth import extract_bearer_token, get_user_from_token

logger = logging.getLogger(__name__)


class AuthMiddleware(BaseHTTPMiddleware):
    """
    JWT 인증 미들웨어

    Authorization 헤더에서 JWT를 추출하고 검증합니다.
    검증된 사용자 정보를 request.state에 저장합니다.
    """

    # 인증이 필요 없는 경로
    EXEMPT_PATHS = [
        "/",
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
    ]

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        """미들웨어 처리"""
        path = request.url.path
        if path in self.EXEMPT_PATHS:
            logger.debug(f"Path {path} is exempt from authentication")
            return await call_next(request)

        # 개발 모드에서 인증 비활성화 옵션
        if not settings.require_auth:
            logger.debug("Authentication disabled in development mode")
            request.state.user = None
            return await call_next(request)

        authorization = request.headers.get("Authorization")

        if not authorization:
            logger.warning(f"Missing Authorization header: {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Missing authorization header"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        token = extract_bearer_token(authorization)

        if not token:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid authorization header format"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        user = get_user_from_token(token)

        if user is None:
            logger.warning("Invalid or expired token")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or expired token"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        request.state.user = user
        logger.debug(f"Authenticated user: {user.user_id}")

        return await call_next(request)


class RawRequestLoggingMiddleware:
    """
    로깅만 수행하는 raw ASGI 미들웨어.
    응답 본문을 읽거나 버퍼링하지 않아 SSE 스트림이 그대로 대시보드로 전달됩니다.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return
        request_id = str(uuid.uuid4())
        scope["request_id"] = request_id
        start_time = time.time()
        method = scope.get("method", "")
        path = scope.get("path", "")
        client = scope.get("client")
        client_host = client[0] if client else "unknown"
        logger.info(f"[{request_id}] {method} {path} - Client: {client_host}")
        status_code: int | None = None

        async def send_wrapper(message: dict) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)
            if message["type"] == "http.response.body" and not message.get("more_body", False):
                duration = time.time() - start_time
                logger.info(
                    f"[{request_id}] {method} {path} - Status: {status_code} - Duration: {duration:.3f}s"
                )

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"[{request_id}] Request failed after {duration:.3f}s: {e}",
                exc_info=True,
            )
            raise


class RequestIdStateMiddleware(BaseHTTPMiddleware):
    """scope.request_id → request.state.request_id (get_request_id 등에서 사용)."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.scope.get("request_id")
        request.state.request_id = request_id if isinstance(request_id, str) else str(uuid.uuid4())
        return await call_next(request)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    에러 처리 미들웨어

    예외를 캐치하고 일관된 형식의 에러 응답을 반환합니다.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        try:
            return await call_next(request)
        except PermissionError as e:
            logger.warning(f"Permission denied: {e}")
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={
                    "detail": str(e),
                    "error_type": "permission_error",
                },
            )
        except ValueError as e:
            logger.warning(f"Validation error: {e}")
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "detail": str(e),
                    "error_type": "validation_error",
                },
            )
        except Exception as e:
            logger.error(f"Unhandled exception: {e}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "detail": "Internal server error",
                    "error_type": "server_error",
                },
            )


def setup_middlewares(app) -> None:
    """
    FastAPI 앱에 미들웨어 추가.
    로깅은 raw ASGI로 해서 SSE 스트림 본문이 그대로 전달되도록 함.
    """
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestIdStateMiddleware)
    app.add_middleware(AuthMiddleware)
    app.add_middleware(RawRequestLoggingMiddleware)
    logger.info("Middlewares configured")
