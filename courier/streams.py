from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, cast

import redis


@dataclass(frozen=True, slots=True)
class Mailbox:
    world_id: str
    player_id: str

    @property
    def key(self) -> str:
        return f"notices:{self.world_id}:{self.player_id}"


@dataclass(frozen=True, slots=True)
class StreamMessage:
    stream_key: str
    fields: dict[str, str]


def publish_many(*, r: redis.Redis, entries: Sequence[StreamMessage]) -> list[str]:
    """Append each entry to its stream, in order. Returns the new stream ids."""

    ids: list[str] = []
    for entry in entries:
        # redis-py stubs expect field/value unions; we only ever write string fields/values.
        stream_id = r.xadd(entry.stream_key, {str(k): str(v) for k, v in entry.fields.items()})
        ids.append(cast(str, stream_id))
    return ids
