"""
Galuxium Message API Schemas

POST /galuxium/messages, 대화/모델 목록 요청·응답 모델.
분류 결과에 따라 chat 응답 또는 founders 세션 안내 응답을 반환합니다.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from core.chat.client import ChatTurn


class MessageRequest(BaseModel):
    """사용자 메시지 요청"""
    message: str = Field(..., min_length=1, description="사용자 프롬프트")
    conversation_id: str | None = Field(default=None, description="대화 ID (없으면 첫 메시지로 새 대화 생성)")
    model: str | None = Field(default=None, description="채팅 모델 slug")
    history: list[ChatTurn] = Field(default_factory=list, description="이전 대화 이력")


class ChatReply(BaseModel):
    """일반 채팅 경로 응답"""
    mode: Literal["chat"] = "chat"
    conversation_id: str = Field(..., description="메시지가 저장된 대화 ID (없으면 새로 생성)")
    reply: str = Field(..., description="어시스턴트 답변")
    user_tokens: int = Field(default=0, description="사용자 메시지 추정 토큰 수")
    assistant_tokens: int = Field(default=0, description="답변 추정 토큰 수")


class FoundersSessionStarted(BaseModel):
    """founders mode 세션 시작 응답 (202)"""
    mode: Literal["founders"] = "founders"
    session_id: str
    conversation_id: str = Field(..., description="메시지가 저장된 대화 ID (없으면 새로 생성)")
    idea: str
    stream_path: str = Field(..., description="대시보드가 연결할 SSE 경로")


class CancelResponse(BaseModel):
    """세션 취소 응답"""
    session_id: str
    cancelled: bool
    status: str


class ConversationList(BaseModel):
    """사용자 대화 목록"""
    conversations: list[dict[str, Any]] = Field(default_factory=list)


class ModelList(BaseModel):
    """채팅 모델 목록"""
    models: list[dict[str, Any]] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    """대화 삭제 응답"""
    conversation_id: str
    deleted: bool
