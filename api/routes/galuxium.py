"""
Galuxium Routes

대시보드 AI 채팅 엔드포인트.

- POST   /galuxium/messages                  프롬프트 분류 후 chat 응답 또는 founders 세션 시작(202)
- GET    /galuxium/sessions/{sessionId}/stream  founders 세션 이벤트 SSE 중계
- GET    /galuxium/sessions/{sessionId}         세션 스냅샷
- DELETE /galuxium/sessions/{sessionId}         세션 취소
- GET    /galuxium/conversations                 대화 목록
- DELETE /galuxium/conversations/{conversationId} 대화 삭제
- GET    /galuxium/models                        채팅 모델 목록
- POST   /galuxium/mvps/generate                 MVP 코드 생성 SSE 중계
"""

import logging
import uuid

from fastapi import APIRouter, HTTPException, Response, status
from fastapi.responses import StreamingResponse

from api.dependencies import ChatClientDep, ClassifierDep, CurrentUser, MvpClientDep, RegistryDep, RequestId
from api.schemas.messages import (
    CancelResponse,
    ChatReply,
    ConversationList,
    DeleteResponse,
    FoundersSessionStarted,
    MessageRequest,
    ModelList,
)
from api.sse_utils import (
    SSE_CONNECTED_LINE,
    SSE_DONE_LINE,
    SSE_HEADERS,
    SSE_KEEPALIVE_LINE,
    format_sse_line,
)
from core.chat.client import ChatCompletionError, ChatMessage, estimate_tokens
from core.context import set_request_context
from core.mvp.generator import MvpForm
from core.orchestration.registry import SessionRegistry
from core.orchestration.schemas import SessionSnapshot
from core.orchestration.session import EVENT_END, OrchestrationSession
from core.security.auth import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/galuxium", tags=["galuxium"])

# 이벤트가 없을 때 keepalive 주석을 보내는 간격 (초)
STREAM_KEEPALIVE_SECONDS = 15.0


def _get_owned_session(registry: SessionRegistry, session_id: str, user: User) -> OrchestrationSession:
    """세션 조회 + 소유자 확인 (다른 사용자 세션은 404로 숨김)"""
    session = registry.get(session_id)
    if session is None or session.user_id != user.user_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found or expired",
        )
    return session


@router.post("/messages", response_model=ChatReply | FoundersSessionStarted)
async def send_message(
    request: MessageRequest,
    response: Response,
    user: CurrentUser,
    request_id: RequestId,
    classifier: ClassifierDep,
    chat_client: ChatClientDep,
    registry: RegistryDep,
) -> ChatReply | FoundersSessionStarted:
    """
    사용자 메시지 처리

    1. conversation_id가 없으면 대화 생성 (실패 시 502)
    2. 사용자 메시지 저장
    3. 프롬프트 분류 (실패 시 일반 채팅)
    4. 스타트업 아이디어 → founders 세션 생성/시작, stream_path 반환 (202)
    5. 그 외 → 채팅 응답 생성 후 assistant 메시지 저장
    """
    set_request_context(
        user_id=user.user_id,
        auth_token=user.access_token,
        trace_id=request_id,
        conversation_id=request.conversation_id,
    )

    conversation_id = request.conversation_id
    if not conversation_id:
        conversation_id = await chat_client.create_conversation(user.user_id, request.message, request.model)
        if not conversation_id:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to create conversation",
            )
        logger.info("Conversation created: conversation_id=%s user_id=%s", conversation_id, user.user_id)

    await chat_client.save_message(ChatMessage(
        id=str(uuid.uuid4()),
        conversation_id=conversation_id,
        user_id=user.user_id,
        role="user",
        content=request.message,
        model_used=request.model,
    ))

    classification = await classifier.classify(request.message)

    if classification.is_startup_idea:
        session = registry.create(
            user.user_id,
            classification.idea,
            conversation_id=conversation_id,
            model=request.model,
        )
        session.start()
        response.status_code = status.HTTP_202_ACCEPTED
        return FoundersSessionStarted(
            session_id=session.session_id,
            conversation_id=conversation_id,
            idea=classification.idea,
            stream_path=f"{router.prefix}/sessions/{session.session_id}/stream",
        )

    try:
        reply = await chat_client.complete(request.model, request.history, request.message)
    except ChatCompletionError as e:
        logger.error(f"Chat completion failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="AI response failed",
        )

    await chat_client.save_message(ChatMessage(
        id=str(uuid.uuid4()),
        conversation_id=conversation_id,
        user_id=user.user_id,
        role="assistant",
        content=reply,
        model_used=request.model,
    ))

    return ChatReply(
        conversation_id=conversation_id,
        reply=reply,
        user_tokens=estimate_tokens(request.message),
        assistant_tokens=estimate_tokens(reply),
    )


@router.get("/sessions/{session_id}/stream")
async def session_stream(
    session_id: str,
    user: CurrentUser,
    registry: RegistryDep,
):
    """
    founders 세션 이벤트 스트림

    snapshot → status / agent_update / idea / notification / report … → end → [DONE]
    세션 이벤트 큐는 1회 소비이므로, 재연결 시에는 첫 snapshot으로 현재 상태를 복원합니다.
    """
    session = _get_owned_session(registry, session_id, user)
    logger.info("session_stream: start consuming session_id=%s", session_id)

    async def event_generator():
        yield SSE_CONNECTED_LINE
        event_id = 0
        yield format_sse_line("snapshot", session.snapshot().model_dump(mode="json"), event_id)
        while True:
            ev = await session.get_event(timeout=STREAM_KEEPALIVE_SECONDS)
            if ev is None:
                if not session.is_active:
                    logger.info("session_stream: session ended without end event session_id=%s", session_id)
                    break
                yield SSE_KEEPALIVE_LINE
                continue
            event_type, payload = ev
            event_id += 1
            yield format_sse_line(event_type, payload, event_id)
            if event_type == EVENT_END:
                break
        yield SSE_DONE_LINE

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
async def get_session(
    session_id: str,
    user: CurrentUser,
    registry: RegistryDep,
) -> SessionSnapshot:
    """세션 스냅샷 (phase별 AgentOutput, 로그 수, 리포트, 에러)"""
    return _get_owned_session(registry, session_id, user).snapshot()


@router.delete("/sessions/{session_id}", response_model=CancelResponse)
async def cancel_session(
    session_id: str,
    user: CurrentUser,
    registry: RegistryDep,
) -> CancelResponse:
    """세션 취소 (스트림 연결 종료). 이미 종료된 세션이면 cancelled=False"""
    session = _get_owned_session(registry, session_id, user)
    cancelled = session.cancel()
    return CancelResponse(
        session_id=session_id,
        cancelled=cancelled,
        status=session.status.value,
    )


@router.get("/conversations", response_model=ConversationList)
async def list_conversations(
    user: CurrentUser,
    chat_client: ChatClientDep,
) -> ConversationList:
    """현재 사용자의 대화 목록"""
    set_request_context(user_id=user.user_id, auth_token=user.access_token)
    conversations = await chat_client.list_conversations(user.user_id)
    if conversations is None:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to load conversations",
        )
    return ConversationList(conversations=conversations)


@router.delete("/conversations/{conversation_id}", response_model=DeleteResponse)
async def delete_conversation(
    conversation_id: str,
    user: CurrentUser,
    chat_client: ChatClientDep,
) -> DeleteResponse:
    """대화 삭제"""
    set_request_context(user_id=user.user_id, auth_token=user.access_token)
    if not await chat_client.delete_conversation(conversation_id):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to delete conversation",
        )
    return DeleteResponse(conversation_id=conversation_id, deleted=True)


@router.get("/models", response_model=ModelList)
async def list_models(
    user: CurrentUser,
    chat_client: ChatClientDep,
) -> ModelList:
    """채팅 모델 목록"""
    set_request_context(user_id=user.user_id, auth_token=user.access_token)
    models = await chat_client.list_models()
    if models is None:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to load models",
        )
    return ModelList(models=models)


@router.post("/mvps/generate")
async def generate_mvp(
    form: MvpForm,
    user: CurrentUser,
    mvp_client: MvpClientDep,
):
    """
    MVP 코드 생성 스트림

    started → file / download … → done | error → [DONE]
    """
    set_request_context(user_id=user.user_id, auth_token=user.access_token)
    logger.info("MVP generation requested: user_id=%s project=%s", user.user_id, form.resolved_project_name)

    async def event_generator():
        yield SSE_CONNECTED_LINE
        event_id = 0
        async for event_type, payload in mvp_client.generate(form, user.user_id):
            event_id += 1
            yield format_sse_line(event_type, payload, event_id)
        yield SSE_DONE_LINE

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
