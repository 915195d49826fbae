"""
Ephemeral key-value cache in front of the record store and the reports.

The cache is a performance optimization only: every public method swallows
``CacheFailure`` after logging it, so an unavailable Redis degrades to a miss
(reads) or a no-op (writes) and the caller falls back to the store.
"""
import json
import logging
from typing import Any, Callable, List, Optional

import redis
from redis.exceptions import RedisError

from spendwise.core.config import settings
from spendwise.core.errors import CacheFailure

logger = logging.getLogger(__name__)


def dumps(value: Any) -> str:
    return json.dumps(value, default=str, separators=(",", ":"))


class Cache:
    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: Optional[str] = None) -> "Cache":
        client = redis.Redis.from_url(
            url or settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        )
        return cls(client)

    def _call(self, operation: str, key: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except RedisError as e:
            raise CacheFailure(f"cache {operation} failed for {key}: {e}", cause=e)

    def get_json(self, key: str) -> Any:
        try:
            raw = self._call("get", key, lambda: self.client.get(key))
        except CacheFailure as failure:
            logger.warning(failure.message)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry {key}")
            return None

    def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> str:
        """Store ``value`` serialized. Returns the serialized payload whether or not the write succeeded."""
        payload = dumps(value)
        try:
            self._call("set", key, lambda: self.client.set(key, payload, ex=ttl))
        except CacheFailure as failure:
            logger.warning(failure.message)
        return payload

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            self._call("delete", ",".join(keys), lambda: self.client.delete(*keys))
        except CacheFailure as failure:
            logger.warning(failure.message)

    def remember(self, key: str, ttl: int, loader: Callable[[], Any]) -> Any:
        """
        Cache-aside read. On a hit the cached value is returned as stored; on a
        miss ``loader`` runs, its result is cached and the deserialized copy is
        returned, so a hit and a miss hand back identical structures.
        Exceptions from ``loader`` propagate and nothing is cached.
        """
        cached = self.get_json(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return cached
        logger.debug(f"Cache miss: {key}")
        payload = self.set_json(key, loader(), ttl)
        return json.loads(payload)

    def generation(self, key: str) -> int:
        try:
            raw = self._call("get", key, lambda: self.client.get(key))
        except CacheFailure as failure:
            logger.warning(failure.message)
            return 0
        return int(raw) if raw else 0

    def bump_generation(self, key: str) -> None:
        try:
            self._call("incr", key, lambda: self.client.incr(key))
        except CacheFailure as failure:
            logger.warning(failure.message)

    def push_bounded(self, key: str, value: Any, limit: int) -> bool:
        """Prepend ``value`` and trim the list to ``limit`` entries in one MULTI/EXEC."""
        payload = dumps(value)

        def _push():
            with self.client.pipeline(transaction=True) as pipe:
                pipe.lpush(key, payload)
                pipe.ltrim(key, 0, limit - 1)
                pipe.execute()

        try:
            self._call("push", key, _push)
            return True
        except CacheFailure as failure:
            logger.warning(failure.message)
            return False

    def list_json(self, key: str) -> List[Any]:
        try:
            raw_items = self._call("lrange", key, lambda: self.client.lrange(key, 0, -1))
        except CacheFailure as failure:
            logger.warning(failure.message)
            return []
        return [json.loads(raw) for raw in raw_items]

    def update_list_item(
        self,
        key: str,
        match: Callable[[dict], bool],
        change: Callable[[dict], dict],
    ) -> bool:
        """
        Replace the first entry for which ``match`` is true with ``change(entry)``.
        Runs under WATCH so a concurrent push or update retries instead of being lost.
        """

        def _update(pipe):
            for index, raw in enumerate(pipe.lrange(key, 0, -1)):
                item = json.loads(raw)
                if match(item):
                    pipe.multi()
                    pipe.lset(key, index, dumps(change(item)))
                    return True
            return False

        try:
            return self._call(
                "update",
                key,
                lambda: self.client.transaction(_update, key, value_from_callable=True),
            )
        except CacheFailure as failure:
            logger.warning(failure.message)
            return False

    def ping(self) -> bool:
        try:
            return bool(self._call("ping", "-", self.client.ping))
        except CacheFailure as failure:
            logger.warning(failure.message)
            return False
