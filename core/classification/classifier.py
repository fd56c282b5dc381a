"""
Idea Classifier

사용자 프롬프트가 스타트업 아이디어인지 판별하여 라우팅을 결정합니다.
- is_startup_idea=True  → founders mode (멀티 에이전트 오케스트레이션)
- is_startup_idea=False → 일반 채팅 경로
분류 호출이 실패하면 항상 일반 채팅으로 fallback 합니다.
"""

import logging

import httpx
from pydantic import BaseModel, Field, ValidationError

from core.config import settings
from core.context import get_backend_headers
from core.http_client import parse_json_body, post_json

logger = logging.getLogger(__name__)


class Classification(BaseModel):
    """분류 결과"""
    is_startup_idea: bool = Field(default=False, description="스타트업 아이디어 여부")
    idea: str = Field(..., description="오케스트레이터에 넘길 아이디어 문장")


class IdeaClassifier:
    """Galuxium 백엔드 분류 API 클라이언트"""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = (
            f"{(base_url or settings.galuxium_backend_url).rstrip('/')}"
            f"/{settings.classify_path.lstrip('/')}"
        )
        self._transport = transport

    async def classify(self, text: str) -> Classification:
        """프롬프트 분류. 실패 시 {is_startup_idea: False, idea: text}"""
        fallback = Classification(is_startup_idea=False, idea=text)
        ok, status_code, body_text = await post_json(
            self._url,
            {"prompt": text},
            headers=get_backend_headers(),
            timeout=settings.http_timeout,
            transport=self._transport,
        )
        if not ok:
            logger.warning("Classify failed: status=%s, falling back to chat", status_code)
            return fallback

        body = parse_json_body(body_text)
        if body is None:
            logger.warning("Classify returned non-object body, falling back to chat")
            return fallback
        if not body.get("idea"):
            body["idea"] = text
        try:
            result = Classification.model_validate(body)
        except ValidationError as e:
            logger.warning("Classify result rejected: %s", e.errors(include_url=False))
            return fallback

        logger.info("Classification result: is_startup_idea=%s", result.is_startup_idea)
        return result
