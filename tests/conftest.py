from __future__ import annotations

from collections.abc import Callable

import fakeredis
import pytest

from courier.config import PostSettings
from courier.host.base import Contact
from courier.infra import redis_client
from courier.post_office import PostOffice


class FakeWorld:
    """In-memory host: clock, sessions, directory, positions, treasury and events."""

    def __init__(self) -> None:
        self.day = 0.0
        self.contacts: dict[str, Contact] = {}
        self.positions: dict[str, tuple[float, float]] = {}
        self.balances: dict[str, int] = {"player": 1_000}
        self.transfers: list[tuple[str, str | None, int]] = []

        self.session_open_elsewhere = False
        self.restricted = False
        self.in_settlement = True
        self.fail_open: set[str] = set()
        self.opened: list[str] = []

        self.daily: list[Callable[[], object]] = []
        self.hourly: list[Callable[[], object]] = []
        self.ended: list[Callable[..., object]] = []

    # Clock
    def now(self) -> float:
        return self.day

    # SessionHost
    def is_session_open_elsewhere(self) -> bool:
        return self.session_open_elsewhere

    def in_restricted_location(self) -> bool:
        return self.restricted

    def player_in_settlement(self) -> bool:
        return self.in_settlement

    def open_interactive_session(self, person_id: str) -> None:
        if person_id in self.fail_open:
            raise RuntimeError("no valid player party")
        self.opened.append(person_id)

    # Directory
    def contact(self, person_id: str) -> Contact | None:
        return self.contacts.get(person_id)

    # PositionResolver
    def resolve_position(self, entity_id: str) -> tuple[float, float] | None:
        return self.positions.get(entity_id)

    # Treasury
    def balance(self, party_id: str) -> int:
        return self.balances.get(party_id, 0)

    def transfer_currency(self, from_id: str, to_id: str | None, amount: int) -> None:
        self.balances[from_id] = self.balances.get(from_id, 0) - amount
        if to_id is not None:
            self.balances[to_id] = self.balances.get(to_id, 0) + amount
        self.transfers.append((from_id, to_id, amount))

    # EventHub
    def on_daily_tick(self, callback: Callable[[], object]) -> None:
        self.daily.append(callback)

    def on_hourly_tick(self, callback: Callable[[], object]) -> None:
        self.hourly.append(callback)

    def on_session_ended(self, callback: Callable[..., object]) -> None:
        self.ended.append(callback)

    # helpers
    def add_person(self, person_id: str, **kwargs: object) -> Contact:
        kwargs.setdefault("name", person_id.title())
        kwargs.setdefault("settlement_id", "town-1")
        c = Contact(person_id=person_id, **kwargs)  # type: ignore[arg-type]
        self.contacts[person_id] = c
        return c

    def end_session(self) -> None:
        for cb in self.ended:
            cb()


@pytest.fixture()
def world() -> FakeWorld:
    return FakeWorld()


@pytest.fixture()
def flat_settings() -> PostSettings:
    return PostSettings(use_realistic_timing=False, flat_delay_days=3)


def make_post(world: FakeWorld, *, settings: PostSettings | None = None, recall=None) -> PostOffice:  # type: ignore[no-untyped-def]
    post = PostOffice(
        world_id="w1",
        player_id="player",
        clock=world,
        sessions=world,
        directory=world,
        positions=world,
        treasury=world,
        recall=recall,
        settings=settings,
    )
    post.register(world)
    return post


@pytest.fixture()
def post(world: FakeWorld, flat_settings: PostSettings) -> PostOffice:
    return make_post(world, settings=flat_settings)


@pytest.fixture()
def post_factory(world: FakeWorld) -> Callable[..., PostOffice]:
    def _make(**kwargs: object) -> PostOffice:
        return make_post(world, **kwargs)  # type: ignore[arg-type]

    return _make


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def env_redis(monkeypatch: pytest.MonkeyPatch) -> fakeredis.FakeRedis:
    """Make connections opened from COURIER_REDIS_URL land on one in-memory server."""

    server = fakeredis.FakeServer()

    def _create(url: str | None = None) -> fakeredis.FakeRedis:
        return fakeredis.FakeRedis(server=server, decode_responses=True)

    monkeypatch.setattr(redis_client, "create_redis", _create)
    return fakeredis.FakeRedis(server=server, decode_responses=True)
