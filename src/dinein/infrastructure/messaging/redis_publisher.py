from __future__ import annotations

import logging
from typing import Callable

import redis

from dinein.application.ports.publisher import EventPublisher
from dinein.infrastructure.messaging.redis_client import get_redis_client

logger = logging.getLogger(__name__)


class RedisEventPublisher(EventPublisher):
    """Publishes serialized event envelopes on Redis pub/sub channels."""

    def __init__(
        self,
        timeout_seconds: float = 1.0,
        client_factory: Callable[[float], redis.Redis] = get_redis_client,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._client_factory = client_factory

    def publish(self, channel: str, message: str) -> None:
        receivers = self._client_factory(self._timeout_seconds).publish(channel, message)
        logger.debug("event_published", extra={"channel": channel, "receivers": receivers})
