from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

import redis

from courier.infra.redis_client import redis_connection
from courier.streams import Mailbox, StreamMessage, publish_many


class NoticeType(StrEnum):
    letter_sent = "letter_sent"
    recall_sent = "recall_sent"
    response_arrived = "response_arrived"
    letter_deferred = "letter_deferred"
    deferred_available = "deferred_available"
    target_unreachable = "target_unreachable"
    recall_completed = "recall_completed"
    recall_failed = "recall_failed"
    session_failed = "session_failed"
    delivery_failed = "delivery_failed"


class Severity(StrEnum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


# Purely informational; silenced when notifications are turned off.
OPTIONAL_NOTICES = frozenset({NoticeType.response_arrived, NoticeType.deferred_available})


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


class Outbox:
    """Player notices buffered during a tick.

    Tick callbacks must not do I/O, so notices are collected here and the host
    publishes them to the player's stream afterwards with `flush_outbox`.
    """

    def __init__(self, *, mailbox: Mailbox, show_notifications: bool = True) -> None:
        self.mailbox = mailbox
        self.show_notifications = show_notifications
        self._pending: list[StreamMessage] = []

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> tuple[StreamMessage, ...]:
        return tuple(self._pending)

    def post(
        self,
        notice: NoticeType,
        *,
        severity: Severity,
        message: str,
        **fields: object,
    ) -> StreamMessage | None:
        if notice in OPTIONAL_NOTICES and not self.show_notifications:
            return None
        payload = {
            "type": notice.value,
            "severity": severity.value,
            "message": message,
            "world_id": self.mailbox.world_id,
            "player_id": self.mailbox.player_id,
        }
        payload.update({k: "" if v is None else str(v) for k, v in fields.items()})
        payload["ts"] = _now_iso()
        entry = StreamMessage(stream_key=self.mailbox.key, fields=payload)
        self._pending.append(entry)
        return entry

    def drain(self) -> list[StreamMessage]:
        entries, self._pending = self._pending, []
        return entries


def flush_outbox(*, outbox: Outbox, r: redis.Redis | None = None) -> list[str]:
    """Publish everything buffered so far to Redis Streams."""

    if r is None:
        with redis_connection() as conn:
            return publish_many(r=conn, entries=outbox.drain())
    return publish_many(r=r, entries=outbox.drain())
