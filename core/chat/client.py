"""
Chat Client

일반 채팅 경로와 대화(생성, 목록, 삭제, 메시지 저장) 관리.

- POST {backend}/api/chat/search  → providerResp.choices[0].message.content
- POST {backend}/api/chat/save    → 메시지 1건 저장 (실패 시 로그만)
- POST {backend}/api/chat/create  → 대화 생성 (data.id)
- GET  {backend}/api/chat/list?userId=..., POST /api/chat/delete, GET /api/chat/models
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Literal

import httpx
from pydantic import BaseModel, Field

from core.config import settings
from core.context import get_backend_headers
from core.http_client import get_json, parse_json_body, post_json

logger = logging.getLogger(__name__)

# 응답 본문에서 답변을 찾지 못했을 때의 표시 문자열
EMPTY_REPLY = "…"
DEFAULT_CONVERSATION_TITLE = "New chat"


class ChatTurn(BaseModel):
    """대화 이력 1턴"""
    role: Literal["user", "assistant"]
    content: str


class ChatMessage(BaseModel):
    """저장용 대화 메시지"""
    id: str
    conversation_id: str
    user_id: str | None = None
    role: str
    content: str | list[dict[str, Any]] = Field(..., description="본문 (founders 로그는 LogEntry 배열)")
    model_used: str | None = None
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class ChatCompletionError(RuntimeError):
    """채팅 응답 생성 실패 (백엔드 non-2xx 또는 전송 오류)"""


def estimate_tokens(text: str) -> int:
    """문자 4개당 1토큰으로 근사 (빈 문자열은 0)"""
    if not text:
        return 0
    return max(1, math.ceil(len(text) / 4))


def extract_reply(body: dict[str, Any] | None) -> str:
    """providerResp.choices[0].message.content → .text → EMPTY_REPLY 순으로 답변 추출"""
    if not body:
        return EMPTY_REPLY
    provider = body.get("providerResp") or {}
    choices = provider.get("choices") if isinstance(provider, dict) else None
    if not choices or not isinstance(choices, list) or not isinstance(choices[0], dict):
        return EMPTY_REPLY
    first = choices[0]
    message = first.get("message")
    if isinstance(message, dict) and message.get("content"):
        return message["content"]
    if first.get("text"):
        return first["text"]
    return EMPTY_REPLY


def _data_list(body: dict[str, Any] | None) -> list[dict[str, Any]]:
    """{"data": [...]} 응답에서 객체 목록만 추출"""
    data = (body or {}).get("data")
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


class ChatClient:
    """Galuxium 채팅 API 클라이언트"""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        system_prompt: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.galuxium_backend_url).rstrip("/")
        self._system_prompt = system_prompt or settings.chat_system_prompt
        self._transport = transport

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def complete(self, model: str | None, history: list[ChatTurn], text: str) -> str:
        """
        대화 이력 + 새 사용자 메시지로 답변 생성.

        Raises:
            ChatCompletionError: 백엔드 호출 실패
        """
        user_messages = [turn.model_dump() for turn in history]
        user_messages.append({"role": "user", "content": text})
        ok, status_code, body_text = await post_json(
            self._url(settings.chat_search_path),
            {
                "model": model,
                "userMessages": user_messages,
                "modelProfile": {"system_prompt": self._system_prompt},
            },
            headers=get_backend_headers(),
            timeout=settings.http_timeout,
            transport=self._transport,
        )
        if not ok:
            raise ChatCompletionError(f"Chat call failed: {status_code}")
        return extract_reply(parse_json_body(body_text))

    async def save_message(self, message: ChatMessage) -> bool:
        """대화 메시지 저장 (실패 시 경고 로그, False 반환)"""
        ok, status_code, text = await post_json(
            self._url(settings.chat_save_path),
            {
                "conversationId": message.conversation_id,
                "userId": message.user_id,
                "role": message.role,
                "content": message.content,
                "model": message.model_used,
            },
            headers=get_backend_headers(),
            timeout=settings.http_timeout,
            transport=self._transport,
        )
        if not ok:
            logger.warning("saveMessage failed: status=%s %s", status_code, text[:200] if text else "")
        return ok

    async def create_conversation(self, user_id: str, text: str, model: str | None) -> str | None:
        """
        첫 메시지로 대화 생성. 제목은 메시지 앞 50자 (비어 있으면 "New chat").

        Returns:
            생성된 conversation id (실패 시 None)
        """
        ok, status_code, body_text = await post_json(
            self._url(settings.chat_create_path),
            {"userId": user_id, "title": text[:50] or DEFAULT_CONVERSATION_TITLE, "model": model},
            headers=get_backend_headers(),
            timeout=settings.http_timeout,
            transport=self._transport,
        )
        if not ok:
            logger.warning("Conversation create failed: status=%s", status_code)
            return None
        body = parse_json_body(body_text) or {}
        data = body.get("data")
        conversation_id = data.get("id") if isinstance(data, dict) else None
        if not conversation_id:
            logger.warning("Conversation create returned no id")
            return None
        return str(conversation_id)

    async def list_conversations(self, user_id: str) -> list[dict[str, Any]] | None:
        """사용자 대화 목록 (실패 시 None)"""
        ok, status_code, body_text = await get_json(
            self._url(settings.chat_list_path),
            params={"userId": user_id},
            headers=get_backend_headers(),
            timeout=settings.http_timeout,
            transport=self._transport,
        )
        if not ok:
            logger.warning("Conversation list failed: status=%s", status_code)
            return None
        return _data_list(parse_json_body(body_text))

    async def delete_conversation(self, conversation_id: str) -> bool:
        """대화 삭제"""
        ok, status_code, text = await post_json(
            self._url(settings.chat_delete_path),
            {"conversationId": conversation_id},
            headers=get_backend_headers(),
            timeout=settings.http_timeout,
            transport=self._transport,
        )
        if not ok:
            logger.warning("Conversation delete failed: status=%s %s", status_code, text[:200] if text else "")
        return ok

    async def list_models(self) -> list[dict[str, Any]] | None:
        """채팅 모델 목록 (실패 시 None)"""
        ok, status_code, body_text = await get_json(
            self._url(settings.chat_models_path),
            headers=get_backend_headers(),
            timeout=settings.http_timeout,
            transport=self._transport,
        )
        if not ok:
            logger.warning("Model list failed: status=%s", status_code)
            return None
        return _data_list(parse_json_body(body_text))
