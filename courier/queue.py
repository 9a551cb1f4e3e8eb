from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator
from uuid import UUID

from courier.models import Letter, LetterKind


class NotificationQueue:
    """FIFO of matured direct messages waiting for their response session.

    `current` holds the letter whose session is open; it leaves the queue head
    when the session starts and is finalized when the session ends.
    """

    def __init__(self) -> None:
        self._items: deque[Letter] = deque()
        self.current: Letter | None = None

    def __len__(self) -> int:
        return len(self._items)

    def enqueue(self, letter: Letter) -> None:
        self._check(letter)
        self._items.append(letter)

    def push_front(self, letter: Letter) -> None:
        self._check(letter)
        self._items.appendleft(letter)

    def peek(self) -> Letter | None:
        return self._items[0] if self._items else None

    def pop(self) -> Letter:
        if not self._items:
            raise ValueError("Notification queue is empty")
        return self._items.popleft()

    def remove(self, letter: Letter) -> bool:
        for item in self._items:
            if item.letter_id == letter.letter_id:
                self._items.remove(item)
                return True
        return False

    def contains(self, letter_id: UUID) -> bool:
        """True if the letter is waiting or is the one being presented."""

        if self.current is not None and self.current.letter_id == letter_id:
            return True
        return any(item.letter_id == letter_id for item in self._items)

    def begin(self, letter: Letter) -> None:
        if self.current is not None:
            raise ValueError("A letter is already being presented")
        self.current = letter

    def finish(self) -> Letter | None:
        """Clear `current`, dropping it from the head if it is somehow still there."""

        letter = self.current
        self.current = None
        if letter is not None:
            head = self.peek()
            if head is not None and head.letter_id == letter.letter_id:
                self._items.popleft()
        return letter

    def _check(self, letter: Letter) -> None:
        if letter.kind != LetterKind.direct_message:
            raise ValueError("Only direct messages are presented through the queue")
        if letter.delivered:
            raise ValueError("Letter was already delivered")
        if self.contains(letter.letter_id):
            raise ValueError("Letter is already queued")


class DeferredTriggerSet:
    """Targets whose meeting was postponed until the player can reach them.

    Insertion-ordered and deduplicated.
    """

    def __init__(self, target_ids: Iterable[str] = ()) -> None:
        self._ids: dict[str, None] = dict.fromkeys(target_ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._ids))

    def __contains__(self, target_id: object) -> bool:
        return target_id in self._ids

    def add(self, target_id: str) -> bool:
        """Returns False if the target was already waiting."""

        if target_id in self._ids:
            return False
        self._ids[target_id] = None
        return True

    def discard(self, target_id: str) -> None:
        self._ids.pop(target_id, None)
