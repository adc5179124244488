"""Redis-backed storage with pub/sub change notifications."""

import json
from collections.abc import Iterator
from typing import Any

import redis

from ..core.exceptions import StorageError
from .base import StorageBackend, StorageEvent


class RedisStorage(StorageBackend):
    """Store keys in Redis and announce writes on a pub/sub channel.

    Each write publishes ``{"key": ..., "source": <handle id>}``. ``poll()``
    drains the subscription without blocking and dispatches events for
    messages published by other handles; the new value is fetched at
    dispatch time, so ``old_value`` is always ``None`` for these events.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        channel: str = "traffiq:storage",
        client: Any | None = None,
    ) -> None:
        super().__init__()
        self.channel = channel
        self._client = client or redis.Redis.from_url(url, decode_responses=True)
        self._pubsub = self._client.pubsub()
        try:
            self._pubsub.subscribe(channel)
        except redis.RedisError as e:
            raise StorageError(
                "Failed to subscribe to change channel",
                operation="subscribe",
                details={"channel": channel},
                cause=e,
            ) from e

    def get_item(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except redis.RedisError as e:
            raise StorageError(
                "Redis read failed", operation="get_item", key=key, cause=e
            ) from e

    def set_item(self, key: str, value: str) -> None:
        self._write(key, value)

    def remove_item(self, key: str) -> None:
        self._write(key, None)

    def _write(self, key: str, value: str | None) -> None:
        notice = json.dumps({"key": key, "source": self.handle_id})
        try:
            pipe = self._client.pipeline()
            if value is None:
                pipe.delete(key)
            else:
                pipe.set(key, value)
            pipe.publish(self.channel, notice)
            pipe.execute()
        except redis.RedisError as e:
            raise StorageError(
                "Redis write failed",
                operation="set_item" if value is not None else "remove_item",
                key=key,
                cause=e,
            ) from e

    def keys(self) -> Iterator[str]:
        try:
            yield from self._client.scan_iter()
        except redis.RedisError as e:
            raise StorageError("Redis scan failed", operation="keys", cause=e) from e

    def poll(self) -> int:
        dispatched = 0
        while True:
            try:
                message = self._pubsub.get_message(timeout=0)
            except redis.RedisError as e:
                raise StorageError(
                    "Redis poll failed", operation="poll", cause=e
                ) from e
            if message is None:
                return dispatched
            if message.get("type") != "message":
                continue
            try:
                notice = json.loads(message["data"])
            except (TypeError, ValueError):
                self.logger.warning(
                    "Ignoring malformed change notice", channel=self.channel
                )
                continue
            if notice.get("source") == self.handle_id or "key" not in notice:
                continue
            key = notice["key"]
            self.dispatch(
                StorageEvent(key=key, old_value=None, new_value=self.get_item(key))
            )
            dispatched += 1

    def close(self) -> None:
        try:
            self._pubsub.close()
        except redis.RedisError as e:
            self.logger.warning("Failed to close pub/sub", error=str(e))
        super().close()
