"""
services/cache.py

사용자 권한 정보(UserInformation) 캐시.

키는 사용자 id ("user:{id}"), 값은 UserInformation JSON.
기본적으로 만료 시간이 없으며, 명시적으로 invalidate 될 때까지 유지된다.

캐시 규칙:
- 로그인 시: invalidate → resolve → populate 순서 (로그인 직후 오래된 권한 정보가 나가지 않음)
- 역할 / 권한 / 사용자 상태를 바꾸는 쪽이 해당 사용자 캐시를 invalidate 할 책임을 진다
- 캐시는 DB 트랜잭션과 묶이지 않는다. invalidate 와 populate 사이에 들어온 요청은
  miss 로 보고 DB 에서 다시 조회한다

세대(generation) 번호:
- 사용자마다 "user:{id}:gen" 카운터를 두고 invalidate 할 때마다 1 증가
- 조회 측은 DB 조회 전에 세대를 읽고, 채울 때 세대가 그대로일 때만 저장한다
- 조회 도중 권한이 바뀌어 invalidate 되면 그 조회 결과는 캐시에 남지 않는다

저장소(CacheStore) 구현:
- InMemoryCacheStore : 프로세스 내부 dict (로컬 / 테스트, 단일 인스턴스)
- RedisCacheStore    : 여러 인스턴스가 공유

"""

import logging
import threading
import time
import uuid
from typing import Any, Optional

import redis
from pydantic import ValidationError as SchemaValidationError

from app.schemas.auth import UserInformation

logger = logging.getLogger(__name__)

INITIAL_GENERATION = "0"


def user_cache_key(user_id: uuid.UUID | str) -> str:
    return f"user:{user_id}"


def user_generation_key(user_id: uuid.UUID | str) -> str:
    return f"user:{user_id}:gen"


class InMemoryCacheStore:
    """프로세스 내부 캐시. ttl_sec 이 None 이면 만료 없음."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and time.monotonic() >= expires_at:
                self._data.pop(key, None)
                return None
            return value

    def set(self, key: str, value: str, ttl_sec: Optional[int] = None) -> None:
        expires_at = time.monotonic() + ttl_sec if ttl_sec else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def set_if_unchanged(
        self, key: str, value: str, guard_key: str, expected: str, ttl_sec: Optional[int] = None
    ) -> bool:
        with self._lock:
            if (self.get(guard_key) or INITIAL_GENERATION) != expected:
                return False
            self.set(key, value, ttl_sec)
            return True

    def incr(self, key: str) -> int:
        with self._lock:
            current = int(self.get(key) or INITIAL_GENERATION) + 1
            self._data[key] = (str(current), None)
            return current

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class RedisCacheStore:
    """Redis 캐시. 여러 API 인스턴스가 같은 권한 캐시를 공유한다."""

    def __init__(self, url: str, key_prefix: str = "iam:") -> None:
        self._client = redis.Redis.from_url(url, decode_responses=True)
        self._prefix = key_prefix

    def get(self, key: str) -> Optional[str]:
        return self._client.get(self._prefix + key)

    def set(self, key: str, value: str, ttl_sec: Optional[int] = None) -> None:
        # ex=None 이면 만료 없음
        self._client.set(self._prefix + key, value, ex=ttl_sec or None)

    def set_if_unchanged(
        self, key: str, value: str, guard_key: str, expected: str, ttl_sec: Optional[int] = None
    ) -> bool:
        # WATCH 한 세대 키가 EXEC 전에 바뀌면 WatchError 로 저장이 취소된다
        guard = self._prefix + guard_key
        with self._client.pipeline() as pipe:
            try:
                pipe.watch(guard)
                if (pipe.get(guard) or INITIAL_GENERATION) != expected:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(self._prefix + key, value, ex=ttl_sec or None)
                pipe.execute()
                return True
            except redis.WatchError:
                return False

    def incr(self, key: str) -> int:
        return self._client.incr(self._prefix + key)

    def delete(self, key: str) -> None:
        self._client.delete(self._prefix + key)


class PermissionCache:
    """권한 캐시 계층. 값은 UserInformation, 키는 사용자 id."""

    def __init__(self, store: Any) -> None:
        self._store = store

    def get(self, user_id: uuid.UUID) -> UserInformation | None:
        # 없거나 읽기 실패 / 형식 오류면 miss → 호출 측이 DB 에서 다시 조회
        key = user_cache_key(user_id)
        try:
            raw = self._store.get(key)
        except redis.RedisError as e:
            logger.warning("permission cache get failed for %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return UserInformation.model_validate_json(raw)
        except SchemaValidationError:
            logger.warning("discarding malformed permission cache entry %s", key)
            self.invalidate(user_id)
            return None

    def generation(self, user_id: uuid.UUID) -> str | None:
        # 읽기 실패면 None → 호출 측은 캐시를 채우지 않는다
        key = user_generation_key(user_id)
        try:
            return self._store.get(key) or INITIAL_GENERATION
        except redis.RedisError as e:
            logger.warning("permission cache generation read failed for %s: %s", key, e)
            return None

    def populate(
        self,
        user_id: uuid.UUID,
        info: UserInformation,
        ttl_sec: Optional[int] = None,
        *,
        generation: str | None = None,
    ) -> bool:
        # ttl_sec=None: 만료 없음
        # generation 이 주어지면 그 사이 invalidate 가 없었을 때만 저장
        # 저장 실패는 로그만 남긴다 (다음 요청이 miss 로 다시 조회)
        key = user_cache_key(user_id)
        value = info.model_dump_json()
        try:
            if generation is None:
                self._store.set(key, value, ttl_sec)
                return True
            stored = self._store.set_if_unchanged(key, value, user_generation_key(user_id), generation, ttl_sec)
        except redis.RedisError as e:
            logger.warning("permission cache set failed for %s: %s", key, e)
            return False
        if not stored:
            logger.info("skipped populating %s: invalidated while resolving", key)
        return stored

    def invalidate(self, user_id: uuid.UUID) -> None:
        # 실패를 삼키지 않는다. 무효화 실패 시 이전 권한 정보가 남는다
        # 세대를 먼저 올려서 진행 중인 조회가 낡은 값을 다시 채우지 못하게 한다
        self._store.incr(user_generation_key(user_id))
        self._store.delete(user_cache_key(user_id))
        logger.debug("permission cache invalidated for user %s", user_id)

    def invalidate_many(self, user_ids) -> None:
        for user_id in user_ids:
            self.invalidate(user_id)
