from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class Contact:
    """Host's view of a person at the moment it was asked."""

    person_id: str
    name: str
    is_alive: bool = True
    is_captive: bool = False

    # Party the person travels with, if any.
    party_id: str | None = None
    # The party can't be met from inside a settlement (caravan on the road, fleet at sea).
    party_is_remote: bool = False

    settlement_id: str | None = None

    @property
    def is_reachable(self) -> bool:
        return self.is_alive and not self.is_captive

    @property
    def is_contactable(self) -> bool:
        """Reachable and somewhere a session can be opened with them right now."""

        return self.is_reachable and (self.party_id is not None or self.settlement_id is not None)


class Clock(Protocol):
    def now(self) -> float:  # pragma: no cover
        ...


class SessionHost(Protocol):
    def is_session_open_elsewhere(self) -> bool:  # pragma: no cover
        ...

    def in_restricted_location(self) -> bool:  # pragma: no cover
        ...

    def player_in_settlement(self) -> bool:  # pragma: no cover
        ...

    def open_interactive_session(self, person_id: str) -> None:  # pragma: no cover
        ...


class Directory(Protocol):
    def contact(self, person_id: str) -> Contact | None:  # pragma: no cover
        ...


class PositionResolver(Protocol):
    def resolve_position(self, entity_id: str) -> tuple[float, float] | None:  # pragma: no cover
        ...


class Treasury(Protocol):
    def balance(self, party_id: str) -> int:  # pragma: no cover
        ...

    def transfer_currency(self, from_id: str, to_id: str | None, amount: int) -> None:  # pragma: no cover
        ...


class RemoteRecall(Protocol):
    def try_recall(self, target_location_id: str) -> bool:  # pragma: no cover
        ...


class EventHub(Protocol):
    def on_daily_tick(self, callback: Callable[[], None]) -> None:  # pragma: no cover
        ...

    def on_hourly_tick(self, callback: Callable[[], None]) -> None:  # pragma: no cover
        ...

    def on_session_ended(self, callback: Callable[..., None]) -> None:  # pragma: no cover
        ...
