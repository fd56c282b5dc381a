"""
대시보드 알림(toast) 발행 (통일 포맷).

메시지 포맷: { "type": "NOTIFICATION", "category": "...", "message": "...", "timestamp": "...", ... }
세션 SSE 스트림으로 항상 전달되고, notifications_redis_enabled 시 Redis 채널로도 발행됩니다.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from core.config import settings

logger = logging.getLogger(__name__)

NOTIFICATION_TYPE = "NOTIFICATION"

NOTIFICATION_CATEGORY_ORCHESTRATION = "ORCHESTRATION"
NOTIFICATION_CATEGORY_STREAM_ERROR = "STREAM_ERROR"
NOTIFICATION_CATEGORY_FINALIZATION = "FINALIZATION"

# 대시보드 toast 자동 닫힘 시간 (ms)
DEFAULT_TOAST_DURATION_MS = 4000


def build_notification_payload(
    category: str,
    message: str,
    *,
    timestamp: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """
    통일 알림 페이로드 생성.

    Args:
        category: NOTIFICATION category (ORCHESTRATION, STREAM_ERROR, FINALIZATION)
        message: 사용자용 메시지
        timestamp: ISO timestamp (None이면 현재 UTC)
        **extra: 추가 필드 (session_id, idea_id 등)

    Returns:
        {"type": "NOTIFICATION", "category": "...", "message": "...", "timestamp": "...", **extra}
    """
    ts = timestamp or datetime.now(timezone.utc).isoformat()
    payload: dict[str, Any] = {
        "type": NOTIFICATION_TYPE,
        "category": category,
        "message": message,
        "timestamp": ts,
        "duration_ms": DEFAULT_TOAST_DURATION_MS,
    }
    payload.update(extra)
    return payload


async def publish_notification(payload: dict[str, Any], channel: str | None = None) -> bool:
    """
    Redis 채널로 알림 발행 (async). 비활성화 상태면 아무것도 하지 않습니다.

    Returns:
        발행 성공 여부 (비활성화 시 False)
    """
    if not settings.notifications_redis_enabled:
        return False
    target = channel or settings.notifications_channel
    try:
        from core.memory.redis_store import get_redis_store
        store = await get_redis_store()
        payload_str = json.dumps(payload, ensure_ascii=False)
        await store.client.publish(target, payload_str.encode("utf-8"))
        logger.info("Notification published: channel=%s category=%s", target, payload.get("category"))
        return True
    except Exception as e:
        logger.warning("Notification publish failed: channel=%s %s", target, e)
        return False
