"""
API Dependencies Module

FastAPI 의존성 주입을 위한 함수들을 정의합니다.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from core.chat.client import ChatClient
from core.classification.classifier import IdeaClassifier
from core.mvp.generator import MvpGeneratorClient
from core.orchestration.registry import SessionRegistry, get_session_registry
from core.security.auth import User, extract_bearer_token, get_user_from_token

logger = logging.getLogger(__name__)


async def get_current_user(request: Request) -> User:
    """
    현재 인증된 사용자 반환

    미들웨어에서 이미 검증된 사용자 정보를 request.state에서 가져옵니다.
    미들웨어에서 설정되지 않은 경우, Authorization 헤더에서 직접 토큰을 확인합니다.

    Raises:
        HTTPException: 인증되지 않은 경우
    """
    if getattr(request.state, "user", None) is not None:
        return request.state.user

    authorization = request.headers.get("Authorization")
    if authorization:
        token = extract_bearer_token(authorization)
        if token:
            user = get_user_from_token(token)
            if user:
                request.state.user = user
                logger.debug(f"User authenticated via fallback: {user.user_id}")
                return user

    logger.warning(f"Authentication failed for path: {request.url.path}")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_request_id(request: Request) -> str:
    """요청 ID 반환"""
    return getattr(request.state, "request_id", "unknown")


_classifier: IdeaClassifier | None = None
_chat_client: ChatClient | None = None
_mvp_client: MvpGeneratorClient | None = None


def get_classifier() -> IdeaClassifier:
    """IdeaClassifier 싱글톤"""
    global _classifier
    if _classifier is None:
        _classifier = IdeaClassifier()
    return _classifier


def get_chat_client() -> ChatClient:
    """ChatClient 싱글톤"""
    global _chat_client
    if _chat_client is None:
        _chat_client = ChatClient()
    return _chat_client


def get_mvp_client() -> MvpGeneratorClient:
    """MvpGeneratorClient 싱글톤"""
    global _mvp_client
    if _mvp_client is None:
        _mvp_client = MvpGeneratorClient()
    return _mvp_client


# 타입 별칭 (편의성)
CurrentUser = Annotated[User, Depends(get_current_user)]
RequestId = Annotated[str, Depends(get_request_id)]
ClassifierDep = Annotated[IdeaClassifier, Depends(get_classifier)]
ChatClientDep = Annotated[ChatClient, Depends(get_chat_client)]
MvpClientDep = Annotated[MvpGeneratorClient, Depends(get_mvp_client)]
RegistryDep = Annotated[SessionRegistry, Depends(get_session_registry)]
