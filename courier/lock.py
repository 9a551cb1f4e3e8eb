from __future__ import annotations

from contextlib import contextmanager
from uuid import uuid4

import redis


@contextmanager
def world_lock(*, r: redis.Redis, world_id: str, ttl_ms: int = 5_000):
    """Best-effort per-world lock around save/load of the post office state.

    The host drives the post office from one logic thread; this only protects the
    persisted copy when several processes share one Redis.
    """

    key = f"lock:courier:{world_id}"
    token = uuid4().hex
    acquired = r.set(key, token, nx=True, px=ttl_ms)
    if not acquired:
        raise ValueError("World is busy")
    try:
        yield
    finally:
        # Don't release a lock that expired and was taken by someone else.
        if r.get(key) in (token, token.encode()):
            r.delete(key)
