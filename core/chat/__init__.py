"""
Chat Module

일반 채팅 경로와 대화(생성, 목록, 삭제, 메시지 저장) 관리.
"""

from core.chat.client import (
    ChatClient,
    ChatCompletionError,
    ChatMessage,
    ChatTurn,
    estimate_tokens,
    extract_reply,
)

__all__ = [
    "ChatClient",
    "ChatCompletionError",
    "ChatMessage",
    "ChatTurn",
    "estimate_tokens",
    "extract_reply",
]
