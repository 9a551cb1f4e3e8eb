from __future__ import annotations

from enum import StrEnum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator


class LetterKind(StrEnum):
    direct_message = "direct_message"
    remote_recall = "remote_recall"


class Letter(BaseModel):
    """One in-flight request.

    Timestamps are simulated days on the host clock. Everything except `delivered`
    is fixed at creation; `delivered` only ever goes from False to True.
    """

    letter_id: UUID = Field(default_factory=uuid4, frozen=True)
    kind: LetterKind = Field(frozen=True)

    # Person the letter is for (direct messages only).
    target_id: str | None = Field(default=None, frozen=True)
    # Place the remote asset is recalled to (recall orders only).
    target_location_id: str | None = Field(default=None, frozen=True)

    origin_location_id: str | None = Field(default=None, frozen=True)

    sent_at: float = Field(frozen=True)
    due_at: float = Field(frozen=True)

    delivered: bool = False

    @model_validator(mode="after")
    def _check_target_and_times(self) -> "Letter":
        if self.kind == LetterKind.direct_message:
            if not self.target_id or self.target_location_id is not None:
                raise ValueError("a direct message needs target_id and no target_location_id")
        else:
            if not self.target_location_id or self.target_id is not None:
                raise ValueError("a recall order needs target_location_id and no target_id")
        if self.due_at < self.sent_at:
            raise ValueError("due_at must not be earlier than sent_at")
        return self

    @classmethod
    def direct(cls, *, target_id: str, origin_location_id: str | None, sent_at: float, delay_days: int) -> "Letter":
        return cls(
            kind=LetterKind.direct_message,
            target_id=target_id,
            origin_location_id=origin_location_id,
            sent_at=sent_at,
            due_at=sent_at + delay_days,
        )

    @classmethod
    def recall(
        cls,
        *,
        target_location_id: str,
        origin_location_id: str | None,
        sent_at: float,
        delay_days: int,
    ) -> "Letter":
        return cls(
            kind=LetterKind.remote_recall,
            target_location_id=target_location_id,
            origin_location_id=origin_location_id,
            sent_at=sent_at,
            due_at=sent_at + delay_days,
        )

    @property
    def is_recall(self) -> bool:
        return self.kind == LetterKind.remote_recall

    @property
    def destination_id(self) -> str:
        """Whichever of target_id/target_location_id this kind uses."""

        return self.target_location_id if self.is_recall else self.target_id  # type: ignore[return-value]

    def is_ready(self, now: float) -> bool:
        return not self.delivered and now >= self.due_at

    def mark_delivered(self) -> bool:
        """Mark delivered; returns False if it already was."""

        if self.delivered:
            return False
        self.delivered = True
        return True


class LedgerSnapshot(BaseModel):
    """Persisted ledger: parallel sequences, one slot per letter.

    Times are stored as days elapsed up to the save moment, so a load at a
    different "now" keeps every letter's remaining wait.
    """

    kinds: list[LetterKind] = Field(default_factory=list)
    target_ids: list[str | None] = Field(default_factory=list)
    origin_ids: list[str | None] = Field(default_factory=list)
    elapsed_since_sent: list[float] = Field(default_factory=list)
    elapsed_since_due: list[float] = Field(default_factory=list)
    delivered: list[bool] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _default_kinds(cls, data: object) -> object:
        # Saves written before recall orders were persisted carry no kinds; those were all direct messages.
        if isinstance(data, dict) and not data.get("kinds") and data.get("target_ids"):
            data = {**data, "kinds": [LetterKind.direct_message] * len(data["target_ids"])}
        return data

    @model_validator(mode="after")
    def _check_lengths(self) -> "LedgerSnapshot":
        n = len(self.target_ids)
        lengths = {
            "kinds": len(self.kinds),
            "origin_ids": len(self.origin_ids),
            "elapsed_since_sent": len(self.elapsed_since_sent),
            "elapsed_since_due": len(self.elapsed_since_due),
            "delivered": len(self.delivered),
        }
        bad = sorted(name for name, size in lengths.items() if size != n)
        if bad:
            raise ValueError(f"ledger snapshot sequences differ in length from target_ids ({n}): {', '.join(bad)}")
        return self

    @property
    def size(self) -> int:
        return len(self.target_ids)


class PostOfficeSnapshot(BaseModel):
    ledger: LedgerSnapshot = Field(default_factory=LedgerSnapshot)

    # Target whose response session was open at save time.
    presenting_target_id: str | None = None

    deferred_target_ids: list[str] = Field(default_factory=list)
