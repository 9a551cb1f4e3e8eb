from __future__ import annotations

import logging
from dataclasses import dataclass

from courier.config import LocationKind, PostSettings
from courier.dispatcher import DeliveryDispatcher, DispatchRecord
from courier.eta import estimate_days
from courier.fsm import SessionFSM, SessionPhase
from courier.gate import SessionGate
from courier.host.base import Clock, Directory, EventHub, PositionResolver, RemoteRecall, SessionHost, Treasury
from courier.host.recall import RankedRecall
from courier.ledger import LetterLedger
from courier.models import Letter, LetterKind, PostOfficeSnapshot
from courier.notices import NoticeType, Outbox, Severity
from courier.queue import DeferredTriggerSet, NotificationQueue
from courier.streams import Mailbox, StreamMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Quote:
    cost: int
    days: int


class PostOffice:
    """Owns the ledger, queue and deferred set for one player.

    The host calls `on_daily_tick`, `on_hourly_tick` and `on_session_ended` from its
    logic thread (see `register`). Persistence goes through `snapshot`/`restore` only.
    None of the callbacks raise; failures become log records and player notices.
    """

    def __init__(
        self,
        *,
        world_id: str,
        player_id: str,
        clock: Clock,
        sessions: SessionHost,
        directory: Directory,
        positions: PositionResolver,
        treasury: Treasury,
        recall: RemoteRecall | None = None,
        settings: PostSettings | None = None,
    ) -> None:
        self.world_id = world_id
        self.player_id = player_id
        self.clock = clock
        self.sessions = sessions
        self.directory = directory
        self.positions = positions
        self.treasury = treasury
        # No providers == recall capability absent; recall letters then fail softly.
        self.recall: RemoteRecall = recall if recall is not None else RankedRecall()
        self.settings = settings or PostSettings()
        self.outbox = Outbox(
            mailbox=Mailbox(world_id=world_id, player_id=player_id),
            show_notifications=self.settings.show_notifications,
        )

        self.ledger = LetterLedger()
        self._reset(queue=NotificationQueue(), deferred_targets=DeferredTriggerSet())

    def _reset(self, *, queue: NotificationQueue, deferred_targets: DeferredTriggerSet) -> None:
        self.queue = queue
        self.deferred_targets = deferred_targets
        self.fsm = SessionFSM(deferred_targets)
        self.dispatcher = DeliveryDispatcher(
            ledger=self.ledger,
            queue=queue,
            directory=self.directory,
            recall=self.recall,
            outbox=self.outbox,
        )
        self.gate = SessionGate(
            sessions=self.sessions,
            directory=self.directory,
            ledger=self.ledger,
            queue=queue,
            deferred_targets=deferred_targets,
            fsm=self.fsm,
            outbox=self.outbox,
            settings=self.settings,
        )

    def register(self, events: EventHub) -> None:
        events.on_daily_tick(self.on_daily_tick)
        events.on_hourly_tick(self.on_hourly_tick)
        events.on_session_ended(self.on_session_ended)

    @property
    def phase(self) -> SessionPhase:
        return self.fsm.phase

    # ---- sending ----

    def _position(self, entity_id: str | None) -> tuple[float, float] | None:
        if entity_id is None:
            return None
        return self.positions.resolve_position(entity_id)

    def quote_letter(self, *, target_id: str, origin_location_id: str | None) -> Quote:
        days = estimate_days(
            origin=self._position(origin_location_id),
            target=self._position(target_id),
            settings=self.settings,
        )
        return Quote(cost=self.settings.cost, days=days)

    def quote_recall(self, *, target_location_id: str, origin_location_id: str | None) -> Quote:
        days = estimate_days(
            origin=self._position(origin_location_id),
            target=self._position(target_location_id),
            settings=self.settings,
        )
        return Quote(cost=self.settings.cost, days=days)

    def can_afford(self) -> bool:
        return self.treasury.balance(self.player_id) >= self.settings.cost

    def _check_origin(self, origin_kind: LocationKind | str) -> None:
        if not self.settings.allows_sending_from(origin_kind):
            raise ValueError(f"Letters cannot be sent from here ({origin_kind})")

    def _pay(self, *, fee_recipient_id: str | None) -> None:
        cost = self.settings.cost
        if not self.can_afford():
            raise ValueError(f"You need {cost} gold to send a letter")
        # Paid to the local owner when that's someone else; otherwise the gold just leaves.
        recipient = fee_recipient_id if fee_recipient_id and fee_recipient_id != self.player_id else None
        self.treasury.transfer_currency(self.player_id, recipient, cost)

    def send_letter(
        self,
        *,
        target_id: str,
        origin_location_id: str | None,
        origin_kind: LocationKind | str,
        fee_recipient_id: str | None = None,
    ) -> Letter:
        self._check_origin(origin_kind)
        if target_id == self.player_id:
            raise ValueError("Cannot send a letter to yourself")
        contact = self.directory.contact(target_id)
        if contact is None:
            raise ValueError("Recipient not found")
        if not contact.is_alive:
            raise ValueError("Recipient is dead")

        quote = self.quote_letter(target_id=target_id, origin_location_id=origin_location_id)
        self._pay(fee_recipient_id=fee_recipient_id)

        letter = Letter.direct(
            target_id=target_id,
            origin_location_id=origin_location_id,
            sent_at=self.clock.now(),
            delay_days=quote.days,
        )
        self.ledger.add(letter)
        logger.info("Letter %s sent to %s, due in %d days", letter.letter_id, target_id, quote.days)
        self.outbox.post(
            NoticeType.letter_sent,
            severity=Severity.success,
            message=f"Letter sent to {contact.name}. Expect a response in {quote.days} days.",
            letter_id=letter.letter_id,
            target_id=target_id,
            days=quote.days,
        )
        return letter

    def send_recall(
        self,
        *,
        target_location_id: str,
        origin_location_id: str | None,
        origin_kind: LocationKind | str,
        fee_recipient_id: str | None = None,
    ) -> Letter:
        self._check_origin(origin_kind)
        quote = self.quote_recall(target_location_id=target_location_id, origin_location_id=origin_location_id)
        self._pay(fee_recipient_id=fee_recipient_id)

        letter = Letter.recall(
            target_location_id=target_location_id,
            origin_location_id=origin_location_id,
            sent_at=self.clock.now(),
            delay_days=quote.days,
        )
        self.ledger.add(letter)
        logger.info("Recall letter %s sent to %s, due in %d days", letter.letter_id, target_location_id, quote.days)
        self.outbox.post(
            NoticeType.recall_sent,
            severity=Severity.success,
            message=f"Fleet recall letter sent to {target_location_id}. Your fleet will be called in {quote.days} days.",
            letter_id=letter.letter_id,
            target_location_id=target_location_id,
            days=quote.days,
        )
        return letter

    # ---- host callbacks ----

    def on_daily_tick(self) -> list[DispatchRecord]:
        records: list[DispatchRecord] = []
        try:
            records = self.dispatcher.dispatch(self.clock.now())
            self.gate.pump()
        except Exception:
            logger.exception("Daily post tick failed")
            self._tick_failed()
        finally:
            pruned = self.ledger.prune_delivered()
            if pruned:
                logger.debug("Pruned %d delivered letters", pruned)
        return records

    def on_hourly_tick(self) -> None:
        try:
            self.gate.pump()
            self.gate.recheck_deferred()
        except Exception:
            logger.exception("Hourly post tick failed")
            self._tick_failed()

    def on_session_ended(self, *_participants: object) -> None:
        try:
            self.gate.on_session_ended()
        except Exception:
            logger.exception("Handling the end of a session failed")
            self._tick_failed()

    def _tick_failed(self) -> None:
        self.outbox.post(
            NoticeType.delivery_failed,
            severity=Severity.error,
            message="The post office ran into a problem; some letters may be delayed.",
        )

    def drain_outbox(self) -> list[StreamMessage]:
        return self.outbox.drain()

    # ---- persistence ----

    def snapshot(self) -> PostOfficeSnapshot:
        now = self.clock.now()
        presenting: str | None = None
        deferred = list(self.deferred_targets)
        current = self.queue.current
        if current is not None:
            presenting = current.target_id
        elif self.gate.active_target_id is not None:
            # A deferred meeting in progress goes back to waiting.
            deferred.append(self.gate.active_target_id)
        return PostOfficeSnapshot(
            ledger=self.ledger.snapshot(now),
            presenting_target_id=presenting,
            deferred_target_ids=deferred,
        )

    def restore(self, snapshot: PostOfficeSnapshot) -> None:
        """Rebuild state from a save, relative to the host clock's current time.

        No session is open after a load. The letter that was being presented at save
        time, if still pending, goes back to the head of the queue.
        """

        now = self.clock.now()
        self.ledger = LetterLedger()
        self.ledger.restore(snapshot.ledger, now=now)
        self._reset(queue=NotificationQueue(), deferred_targets=DeferredTriggerSet(snapshot.deferred_target_ids))

        if snapshot.presenting_target_id is not None:
            resumed = next(
                (
                    l
                    for l in self.ledger.ready_letters(now)
                    if l.kind == LetterKind.direct_message and l.target_id == snapshot.presenting_target_id
                ),
                None,
            )
            if resumed is not None:
                self.queue.push_front(resumed)
        logger.info(
            "Restored %d letters (%d deferred meetings) for world %s",
            len(self.ledger),
            len(self.deferred_targets),
            self.world_id,
        )
