"""Connection options for the Redis store, derived from a base URL."""

from __future__ import annotations

import ssl
from dataclasses import dataclass

import redis
from redis.backoff import ExponentialBackoff
from redis.retry import Retry

DEFAULT_PORT = 6379


@dataclass
class RedisSettings:
    """Redis settings as configured: a base URL and a password."""

    base_url: str = ""
    password: str = ""


@dataclass
class RedisOptions:
    """Options used to build a Redis client."""

    addr: str
    password: str = ""
    db: int = 0
    max_retries: int = 5
    tls_min_version: ssl.TLSVersion | None = None

    @property
    def uses_tls(self) -> bool:
        return self.tls_min_version is not None

    def _host_port(self) -> tuple[str, int]:
        host, sep, port = self.addr.rpartition(":")
        if sep and port.isdigit():
            return host.strip("[]"), int(port)
        return self.addr, DEFAULT_PORT

    def create_client(self) -> redis.Redis:
        """Build a Redis client; no connection is made until first use."""
        host, port = self._host_port()
        return redis.Redis(
            host=host,
            port=port,
            password=self.password or None,
            db=self.db,
            ssl=self.uses_tls,
            retry=Retry(ExponentialBackoff(), self.max_retries),
        )


def new_redis_options(settings: RedisSettings) -> RedisOptions:
    """Derive client options from settings; ``rediss://`` turns on TLS."""
    addr = settings.base_url.removeprefix("redis://").removeprefix("rediss://")
    tls_min_version = (
        ssl.TLSVersion.TLSv1_2 if settings.base_url.startswith("rediss://") else None
    )
    return RedisOptions(
        addr=addr,
        password=settings.password,
        db=0,
        max_retries=5,
        tls_min_version=tls_min_version,
    )