from __future__ import annotations

import logging
from typing import cast

from courier.config import PostSettings
from courier.fsm import SessionFSM, SessionPhase
from courier.host.base import Contact, Directory, SessionHost
from courier.ledger import LetterLedger
from courier.models import Letter
from courier.notices import NoticeType, Outbox, Severity
from courier.queue import DeferredTriggerSet, NotificationQueue

logger = logging.getLogger(__name__)


class SessionGate:
    """Decides when a queued or deferred response may be presented, and opens it.

    Only one session is ever open; the FSM enforces that. The queue is drained
    greedily, one letter per session, in arrival order.
    """

    def __init__(
        self,
        *,
        sessions: SessionHost,
        directory: Directory,
        ledger: LetterLedger,
        queue: NotificationQueue,
        deferred_targets: DeferredTriggerSet,
        fsm: SessionFSM,
        outbox: Outbox,
        settings: PostSettings,
    ) -> None:
        self.sessions = sessions
        self.directory = directory
        self.ledger = ledger
        self.queue = queue
        self.deferred_targets = deferred_targets
        self.fsm = fsm
        self.outbox = outbox
        self.settings = settings
        # Person whose session we opened; set for deferred meetings too, which carry no letter.
        self.active_target_id: str | None = None

    # ---- eligibility ----

    def world_eligible(self) -> bool:
        return not self.sessions.is_session_open_elsewhere() and not self.sessions.in_restricted_location()

    def deferred_eligible(self) -> bool:
        # Deferred meetings happen out on the map, never from inside a settlement.
        return self.world_eligible() and not self.sessions.player_in_settlement()

    # ---- queue ----

    def pump(self) -> None:
        """Start the next queued response if the world allows it."""

        while len(self.queue) and not self.fsm.is_presenting:
            if not self.world_eligible():
                return

            # Non-empty, and the queue only admits direct messages.
            letter = cast(Letter, self.queue.peek())

            try:
                contact = self.directory.contact(cast(str, letter.target_id))
                if contact is None or not contact.is_reachable:
                    self._drop_unreachable(letter, contact)
                    continue

                if contact.party_is_remote and self.sessions.player_in_settlement():
                    self._defer(letter, contact)
                    continue

                if not contact.is_contactable:
                    # Reachable but nowhere to meet yet; keep FIFO order and wait.
                    return

                self.queue.pop()
            except Exception:
                logger.exception("Failed to evaluate queued letter %s", letter.letter_id)
                self.queue.remove(letter)
                self.ledger.mark_delivered(letter)
                self.outbox.post(
                    NoticeType.delivery_failed,
                    severity=Severity.error,
                    message="A response could not be delivered.",
                    letter_id=letter.letter_id,
                    target_id=letter.target_id,
                )
                continue

            self.outbox.post(
                NoticeType.response_arrived,
                severity=Severity.info,
                message=f"You received a response from {contact.name}!",
                letter_id=letter.letter_id,
                target_id=contact.person_id,
            )
            self._open(contact, letter)

    def _drop_unreachable(self, letter: Letter, contact: Contact | None) -> None:
        self.queue.remove(letter)
        self.ledger.mark_delivered(letter)
        name = contact.name if contact is not None else letter.target_id
        logger.warning("Queued letter %s: %s is no longer reachable", letter.letter_id, name)
        self.outbox.post(
            NoticeType.target_unreachable,
            severity=Severity.error,
            message=f"A letter returned from {name}, but they could not be reached.",
            letter_id=letter.letter_id,
            target_id=letter.target_id,
        )

    def _defer(self, letter: Letter, contact: Contact) -> None:
        # The letter itself is done; the meeting is owned by the deferred set from here.
        self.queue.remove(letter)
        self.ledger.mark_delivered(letter)
        self.deferred_targets.add(contact.person_id)
        self.fsm.defer()
        logger.info("Letter %s delivered to %s; meeting deferred", letter.letter_id, contact.person_id)
        self.outbox.post(
            NoticeType.letter_deferred,
            severity=Severity.info,
            message=(
                f"Your letter has reached {contact.name}. "
                "They will meet with you to discuss matters once you leave the settlement."
            ),
            letter_id=letter.letter_id,
            target_id=contact.person_id,
        )

    # ---- deferred meetings ----

    def recheck_deferred(self) -> bool:
        """Open at most one deferred meeting. Returns True if a session was opened."""

        if self.fsm.is_presenting or not len(self.deferred_targets):
            return False
        if not self.deferred_eligible():
            return False

        chosen: Contact | None = None
        for person_id in self.deferred_targets:
            contact = self.directory.contact(person_id)
            if contact is None or not contact.is_alive:
                self.deferred_targets.discard(person_id)
                name = contact.name if contact is not None else person_id
                logger.warning("Deferred meeting with %s dropped; they are gone", name)
                self.outbox.post(
                    NoticeType.target_unreachable,
                    severity=Severity.error,
                    message=f"{name} can no longer meet with you.",
                    target_id=person_id,
                )
                continue
            if contact.is_contactable:
                chosen = contact
                break

        if chosen is None:
            if not len(self.deferred_targets) and self.fsm.phase == SessionPhase.deferred:
                self.fsm.settle()
            return False

        self.deferred_targets.discard(chosen.person_id)
        self.outbox.post(
            NoticeType.deferred_available,
            severity=Severity.info,
            message=f"{chosen.name} is now available to speak with you!",
            target_id=chosen.person_id,
        )
        return self._open(chosen, None)

    # ---- sessions ----

    def _open(self, contact: Contact, letter: Letter | None) -> bool:
        self.fsm.open_session()
        self.active_target_id = contact.person_id
        if letter is not None:
            self.queue.begin(letter)

        try:
            self.sessions.open_interactive_session(contact.person_id)
        except Exception as e:
            logger.exception("Failed to open a session with %s", contact.person_id)
            self.outbox.post(
                NoticeType.session_failed,
                severity=Severity.error,
                message=f"Failed to start a conversation with {contact.name}: {e}",
                target_id=contact.person_id,
            )
            # The letter counts as delivered so it isn't retried forever.
            if self.fsm.is_presenting and self.active_target_id == contact.person_id:
                self._finish()
            return False

        logger.info("Opened session with %s", contact.person_id)
        return True

    def on_session_ended(self) -> None:
        if not self.fsm.is_presenting:
            # Not a session we opened.
            return
        self._finish()
        self.pump()

    def _finish(self) -> None:
        letter = self.queue.finish()
        if letter is not None:
            self.ledger.mark_delivered(letter)
        logger.info("Session with %s ended", self.active_target_id)
        self.active_target_id = None
        self.fsm.close_session()
