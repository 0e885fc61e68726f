import redis
from typing import Optional, TypeVar, Type
from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class RedisCacheBackend:
    """Redis store for cached results, serialized as pydantic JSON."""

    def __init__(self, url: str = "redis://localhost:6379/0", client: Optional[redis.Redis] = None):
        self.client = client if client is not None else redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
        )

    def get(self, key: str, model: Type[T]) -> Optional[T]:
        """Get cached item and deserialize to a pydantic model."""
        data = self.client.get(key)
        if data:
            return model.model_validate_json(data)
        return None

    def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        """Cache a pydantic model with TTL."""
        self.client.setex(
            key,
            ttl_seconds,
            value.model_dump_json(),
        )

    def delete(self, key: str) -> None:
        self.client.delete(key)

    def delete_pattern(self, pattern: str) -> None:
        """Invalidate all keys matching pattern."""
        for key in self.client.scan_iter(match=pattern):
            self.client.delete(key)

    def size(self) -> int:
        return int(self.client.dbsize())

    def ping(self) -> bool:
        return bool(self.client.ping())
