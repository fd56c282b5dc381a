"""
Redis Store Module

알림 발행(Pub/Sub)에 사용하는 Redis 연결을 관리합니다.
"""

import logging

import redis.asyncio as redis
from redis.asyncio import Redis

from core.config import settings

logger = logging.getLogger(__name__)


class RedisStore:
    """
    Redis 연결 래퍼

    앱 수명 동안 연결 풀 1개를 공유합니다.
    """

    def __init__(self, redis_url: str | None = None) -> None:
        """
        RedisStore 초기화

        Args:
            redis_url: Redis 연결 URL (None이면 설정에서 로드)
        """
        self.redis_url = redis_url or settings.redis_url
        self._client: Redis | None = None
        self._pool: redis.ConnectionPool | None = None

    async def connect(self) -> None:
        """Redis 연결 생성"""
        if self._client is None:
            self._pool = redis.ConnectionPool.from_url(
                self.redis_url,
                max_connections=settings.redis_max_connections,
                decode_responses=False,
            )
            self._client = redis.Redis(connection_pool=self._pool)
            logger.info("Redis connection established")

    async def disconnect(self) -> None:
        """Redis 연결 종료"""
        if self._client:
            await self._client.aclose()
            self._client = None
        if self._pool:
            await self._pool.disconnect()
            self._pool = None
            logger.info("Redis connection closed")

    @property
    def client(self) -> Redis:
        """Redis 클라이언트 반환"""
        if self._client is None:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._client

    async def ping(self) -> bool:
        """연결 상태 확인"""
        return bool(await self.client.ping())


# 전역 RedisStore 인스턴스
_redis_store: RedisStore | None = None


async def get_redis_store() -> RedisStore:
    """
    전역 RedisStore 인스턴스 반환

    Returns:
        RedisStore 인스턴스
    """
    global _redis_store
    if _redis_store is None:
        _redis_store = RedisStore()
        await _redis_store.connect()
    return _redis_store


async def cleanup_redis() -> None:
    """
    Redis 연결 정리 (앱 종료 시 호출)
    """
    global _redis_store
    if _redis_store:
        await _redis_store.disconnect()
        _redis_store = None
        logger.info("Redis store cleaned up")
