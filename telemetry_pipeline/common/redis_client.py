"""Conexión a Redis."""

from __future__ import annotations

import logging
from typing import Optional

import redis

logger = logging.getLogger(__name__)


class RedisConnection:
    """Gestiona la conexión a Redis (cache de umbrales + streams)."""

    def __init__(self, url: str, socket_timeout: float = 30.0):
        self._url = url
        self._socket_timeout = socket_timeout
        self._client: Optional[redis.Redis] = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            # socket_timeout must exceed the longest XREADGROUP block.
            self._client = redis.Redis.from_url(
                self._url,
                decode_responses=True,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=5.0,
            )
        return self._client

    def ping(self) -> bool:
        try:
            self.client.ping()
            logger.info("[REDIS] Connected: %s", self._url.split("@")[-1])
            return True
        except redis.RedisError as e:
            logger.warning("[REDIS] Connection failed: %s", e)
            return False

    def disconnect(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            except redis.RedisError as e:
                logger.debug("[REDIS] Close failed: %s", e)
            self._client = None
