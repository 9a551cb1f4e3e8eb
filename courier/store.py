from __future__ import annotations

import redis

from courier.infra.redis_client import redis_connection
from courier.lock import world_lock
from courier.models import PostOfficeSnapshot
from courier.post_office import PostOffice


WORLDS_SET_KEY = "courier:worlds"
POST_KEY_PREFIX = "courier:post:"  # + {world_id}


def _post_key(world_id: str) -> str:
    return f"{POST_KEY_PREFIX}{world_id}"


def save_snapshot(*, r: redis.Redis, world_id: str, snapshot: PostOfficeSnapshot) -> None:
    with world_lock(r=r, world_id=world_id):
        r.set(_post_key(world_id), snapshot.model_dump_json())
        r.sadd(WORLDS_SET_KEY, world_id)


def load_snapshot(*, r: redis.Redis, world_id: str) -> PostOfficeSnapshot | None:
    raw = r.get(_post_key(world_id))
    if not raw:
        return None
    return PostOfficeSnapshot.model_validate_json(raw)


def require_snapshot(*, r: redis.Redis, world_id: str) -> PostOfficeSnapshot:
    snapshot = load_snapshot(r=r, world_id=world_id)
    if snapshot is None:
        raise ValueError("No saved post office for this world")
    return snapshot


def delete_snapshot(*, r: redis.Redis, world_id: str) -> None:
    with world_lock(r=r, world_id=world_id):
        r.delete(_post_key(world_id))
        r.srem(WORLDS_SET_KEY, world_id)


def list_worlds(*, r: redis.Redis) -> list[str]:
    return sorted(r.smembers(WORLDS_SET_KEY))


def save_post_office(*, post: PostOffice, r: redis.Redis | None = None) -> None:
    """Persist `post`. Without `r`, connects to COURIER_REDIS_URL for the call."""

    if r is None:
        with redis_connection() as conn:
            save_snapshot(r=conn, world_id=post.world_id, snapshot=post.snapshot())
        return
    save_snapshot(r=r, world_id=post.world_id, snapshot=post.snapshot())


def load_post_office(*, post: PostOffice, r: redis.Redis | None = None) -> bool:
    """Restore `post` from its world's save. Returns False if there is none."""

    if r is None:
        with redis_connection() as conn:
            snapshot = load_snapshot(r=conn, world_id=post.world_id)
    else:
        snapshot = load_snapshot(r=r, world_id=post.world_id)
    if snapshot is None:
        return False
    post.restore(snapshot)
    return True
