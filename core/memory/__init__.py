"""
Memory Module

알림 발행에 사용하는 Redis 연결을 관리합니다.
"""

from core.memory.redis_store import (
    RedisStore,
    get_redis_store,
    cleanup_redis,
)

__all__ = [
    "RedisStore",
    "get_redis_store",
    "cleanup_redis",
]
