from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from pydantic import ValidationError

from courier.models import Letter, LetterKind, LedgerSnapshot

logger = logging.getLogger(__name__)


class LetterLedger:
    """Owns every in-flight letter, in the order they were sent."""

    def __init__(self, letters: Iterable[Letter] = ()) -> None:
        self._letters: list[Letter] = list(letters)

    def __len__(self) -> int:
        return len(self._letters)

    def __iter__(self) -> Iterator[Letter]:
        return iter(list(self._letters))

    def add(self, letter: Letter) -> None:
        self._letters.append(letter)

    def ready_letters(self, now: float) -> list[Letter]:
        return [l for l in self._letters if l.is_ready(now)]

    def mark_delivered(self, letter: Letter) -> None:
        letter.mark_delivered()

    def prune_delivered(self) -> int:
        """Drop delivered letters. Returns how many were removed."""

        keep = [l for l in self._letters if not l.delivered]
        removed = len(self._letters) - len(keep)
        self._letters = keep
        return removed

    def snapshot(self, now: float) -> LedgerSnapshot:
        snap = LedgerSnapshot()
        for letter in self._letters:
            snap.kinds.append(letter.kind)
            snap.target_ids.append(letter.destination_id)
            snap.origin_ids.append(letter.origin_location_id)
            snap.elapsed_since_sent.append(now - letter.sent_at)
            snap.elapsed_since_due.append(now - letter.due_at)
            snap.delivered.append(letter.delivered)
        return snap

    def restore(self, snapshot: LedgerSnapshot, *, now: float) -> None:
        """Replace the contents with letters rebuilt relative to `now`.

        Entries that can't form a valid letter (e.g. a direct message whose target
        no longer has an id) are skipped with a warning rather than failing the load.
        """

        letters: list[Letter] = []
        for i in range(snapshot.size):
            kind = snapshot.kinds[i]
            target = snapshot.target_ids[i]
            try:
                letter = Letter(
                    kind=kind,
                    target_id=target if kind == LetterKind.direct_message else None,
                    target_location_id=target if kind == LetterKind.remote_recall else None,
                    origin_location_id=snapshot.origin_ids[i],
                    sent_at=now - snapshot.elapsed_since_sent[i],
                    due_at=now - snapshot.elapsed_since_due[i],
                    delivered=snapshot.delivered[i],
                )
            except ValidationError as e:
                logger.warning("Skipping unrestorable letter #%d (%s to %r): %s", i, kind, target, e)
                continue
            letters.append(letter)
        self._letters = letters
