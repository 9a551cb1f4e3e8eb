from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import cast
from uuid import UUID

from courier.host.base import Directory, RemoteRecall
from courier.ledger import LetterLedger
from courier.models import Letter, LetterKind
from courier.notices import NoticeType, Outbox, Severity
from courier.queue import NotificationQueue

logger = logging.getLogger(__name__)


class DeliveryOutcome(StrEnum):
    enqueued = "enqueued"
    unreachable = "unreachable"
    recalled = "recalled"
    recall_failed = "recall_failed"
    faulted = "faulted"


@dataclass(frozen=True, slots=True)
class DispatchRecord:
    letter_id: UUID
    kind: LetterKind
    outcome: DeliveryOutcome


class DeliveryDispatcher:
    """Daily pass over the ledger: route every matured letter by kind.

    Recall orders fire their side effect right away and are done either way.
    Direct messages go to the notification queue if their target can still be
    reached; otherwise they are closed out with a failure notice.
    """

    def __init__(
        self,
        *,
        ledger: LetterLedger,
        queue: NotificationQueue,
        directory: Directory,
        recall: RemoteRecall,
        outbox: Outbox,
    ) -> None:
        self.ledger = ledger
        self.queue = queue
        self.directory = directory
        self.recall = recall
        self.outbox = outbox

    def matured(self, now: float) -> list[Letter]:
        # Letters already waiting in (or being presented from) the queue stay there.
        return [l for l in self.ledger.ready_letters(now) if not self.queue.contains(l.letter_id)]

    def dispatch(self, now: float) -> list[DispatchRecord]:
        records: list[DispatchRecord] = []
        for letter in self.matured(now):
            try:
                outcome = self.route(letter)
            except Exception:
                logger.exception("Failed to deliver letter %s (%s)", letter.letter_id, letter.kind)
                # Close it out so it can't fail again every day.
                self.ledger.mark_delivered(letter)
                self.outbox.post(
                    NoticeType.delivery_failed,
                    severity=Severity.error,
                    message="A letter was lost on the way and could not be delivered.",
                    letter_id=letter.letter_id,
                )
                outcome = DeliveryOutcome.faulted
            records.append(DispatchRecord(letter_id=letter.letter_id, kind=letter.kind, outcome=outcome))
        return records

    def route(self, letter: Letter) -> DeliveryOutcome:
        if letter.kind == LetterKind.remote_recall:
            return self._deliver_recall(letter)
        return self._deliver_direct(letter)

    def _deliver_recall(self, letter: Letter) -> DeliveryOutcome:
        target = cast(str, letter.target_location_id)
        try:
            if self.recall.try_recall(target):
                logger.info("Recall letter %s delivered to %s", letter.letter_id, target)
                self.outbox.post(
                    NoticeType.recall_completed,
                    severity=Severity.success,
                    message=f"Your fleet has been called to {target}!",
                    letter_id=letter.letter_id,
                    target_location_id=target,
                )
                return DeliveryOutcome.recalled

            logger.warning("Recall to %s unavailable; letter %s closed", target, letter.letter_id)
            self.outbox.post(
                NoticeType.recall_failed,
                severity=Severity.warning,
                message=f"Fleet recall to {target} could not be completed (no recall available or no fleet).",
                letter_id=letter.letter_id,
                target_location_id=target,
            )
            return DeliveryOutcome.recall_failed
        finally:
            self.ledger.mark_delivered(letter)

    def _deliver_direct(self, letter: Letter) -> DeliveryOutcome:
        contact = self.directory.contact(cast(str, letter.target_id))
        if contact is not None and contact.is_reachable:
            self.queue.enqueue(letter)
            logger.info("Letter %s for %s matured; queued for presentation", letter.letter_id, contact.person_id)
            return DeliveryOutcome.enqueued

        name = contact.name if contact is not None else letter.target_id
        logger.warning("Letter %s: %s could not be reached", letter.letter_id, name)
        self.ledger.mark_delivered(letter)
        self.outbox.post(
            NoticeType.target_unreachable,
            severity=Severity.error,
            message=f"A letter returned from {name}, but they could not be reached.",
            letter_id=letter.letter_id,
            target_id=letter.target_id,
        )
        return DeliveryOutcome.unreachable
