from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

import redis

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


def get_redis_url() -> str:
    return os.environ.get("COURIER_REDIS_URL", DEFAULT_REDIS_URL)


def create_redis(url: str | None = None) -> redis.Redis:
    # Snapshots and notices are JSON/str fields, so decode replies to str.
    return redis.Redis.from_url(url or get_redis_url(), decode_responses=True)


@contextmanager
def redis_connection(url: str | None = None) -> Iterator[redis.Redis]:
    """Short-lived client for hosts that save, load or flush without holding one open."""

    client = create_redis(url)
    try:
        yield client
    finally:
        client.close()
