from __future__ import annotations

import pytest

from courier.config import LocationKind
from courier.fsm import SessionPhase
from courier.lock import world_lock
from courier.models import LetterKind, PostOfficeSnapshot
from courier.post_office import PostOffice
from courier.store import (
    WORLDS_SET_KEY,
    delete_snapshot,
    list_worlds,
    load_post_office,
    load_snapshot,
    require_snapshot,
    save_post_office,
    save_snapshot,
)

from conftest import FakeWorld


def _roundtrip(post: PostOffice) -> PostOfficeSnapshot:
    return PostOfficeSnapshot.model_validate_json(post.snapshot().model_dump_json())


def test_restore_keeps_remaining_wait(world: FakeWorld, post: PostOffice) -> None:
    world.add_person("a")
    post.send_letter(target_id="a", origin_location_id="town-1", origin_kind=LocationKind.town)
    world.day = 1.0
    snap = _roundtrip(post)

    world.day = 100.0
    post.restore(snap)
    (letter,) = list(post.ledger)
    assert letter.due_at == pytest.approx(102.0)

    world.day = 101.0
    assert post.on_daily_tick() == []
    world.day = 102.0
    post.on_daily_tick()
    assert world.opened == ["a"]


def test_presented_letter_resumes_at_head_after_load(world: FakeWorld, post: PostOffice) -> None:
    world.add_person("a")
    world.add_person("b")
    post.send_letter(target_id="a", origin_location_id="town-1", origin_kind=LocationKind.town)
    post.send_letter(target_id="b", origin_location_id="town-1", origin_kind=LocationKind.town)

    world.day = 3.0
    post.on_daily_tick()
    assert world.opened == ["a"]

    snap = _roundtrip(post)
    assert snap.presenting_target_id == "a"

    post.restore(snap)
    assert post.phase == SessionPhase.idle
    head = post.queue.peek()
    assert head is not None and head.target_id == "a"

    post.on_hourly_tick()
    assert world.opened == ["a", "a"]

    post.on_daily_tick()
    world.end_session()
    assert world.opened == ["a", "a", "b"]


def test_deferred_meetings_survive_save(world: FakeWorld, post: PostOffice) -> None:
    world.add_person("caravan", party_id="caravan-party", party_is_remote=True, settlement_id=None)
    post.send_letter(target_id="caravan", origin_location_id="town-1", origin_kind=LocationKind.town)
    world.day = 3.0
    post.on_daily_tick()

    snap = _roundtrip(post)
    assert snap.deferred_target_ids == ["caravan"]
    assert snap.presenting_target_id is None

    post.restore(snap)
    assert post.phase == SessionPhase.deferred

    world.in_settlement = False
    post.on_hourly_tick()
    assert world.opened == ["caravan"]


def test_deferred_meeting_in_progress_is_saved_as_waiting(world: FakeWorld, post: PostOffice) -> None:
    world.add_person("caravan", party_id="caravan-party", party_is_remote=True, settlement_id=None)
    post.send_letter(target_id="caravan", origin_location_id="town-1", origin_kind=LocationKind.town)
    world.day = 3.0
    post.on_daily_tick()
    world.in_settlement = False
    post.on_hourly_tick()
    assert post.phase == SessionPhase.presenting

    snap = _roundtrip(post)
    assert snap.deferred_target_ids == ["caravan"]
    assert snap.presenting_target_id is None

    post.restore(snap)
    post.on_hourly_tick()
    assert world.opened == ["caravan", "caravan"]


def test_recall_orders_are_persisted(world: FakeWorld, post: PostOffice) -> None:
    post.send_recall(target_location_id="port-1", origin_location_id="town-1", origin_kind=LocationKind.town)
    snap = _roundtrip(post)

    post.restore(snap)
    (letter,) = list(post.ledger)
    assert letter.kind == LetterKind.remote_recall
    assert letter.target_location_id == "port-1"


def test_store_roundtrip(r, world: FakeWorld, post: PostOffice) -> None:  # type: ignore[no-untyped-def]
    world.add_person("a")
    post.send_letter(target_id="a", origin_location_id="town-1", origin_kind=LocationKind.town)

    assert load_post_office(r=r, post=post) is False
    save_post_office(r=r, post=post)
    assert list_worlds(r=r) == ["w1"]
    assert r.sismember(WORLDS_SET_KEY, "w1")

    world.day = 2.0
    post.restore(PostOfficeSnapshot())
    assert len(post.ledger) == 0

    assert load_post_office(r=r, post=post) is True
    (letter,) = list(post.ledger)
    assert letter.target_id == "a"
    assert letter.due_at == pytest.approx(5.0)


def test_delete_and_require_snapshot(r) -> None:  # type: ignore[no-untyped-def]
    save_snapshot(r=r, world_id="w2", snapshot=PostOfficeSnapshot(deferred_target_ids=["x"]))
    assert require_snapshot(r=r, world_id="w2").deferred_target_ids == ["x"]

    delete_snapshot(r=r, world_id="w2")
    assert load_snapshot(r=r, world_id="w2") is None
    assert list_worlds(r=r) == []
    with pytest.raises(ValueError, match="No saved post office"):
        require_snapshot(r=r, world_id="w2")


def test_save_refused_while_world_is_locked(r) -> None:  # type: ignore[no-untyped-def]
    r.set("lock:courier:w1", "someone-else")
    with pytest.raises(ValueError, match="busy"):
        save_snapshot(r=r, world_id="w1", snapshot=PostOfficeSnapshot())
    assert load_snapshot(r=r, world_id="w1") is None


def test_lock_released_only_by_its_owner(r) -> None:  # type: ignore[no-untyped-def]
    with world_lock(r=r, world_id="w1"):
        assert r.get("lock:courier:w1") is not None
    assert r.get("lock:courier:w1") is None

    with world_lock(r=r, world_id="w1"):
        r.set("lock:courier:w1", "taken-after-expiry")
    assert r.get("lock:courier:w1") == "taken-after-expiry"


def test_save_and_load_without_a_client_use_configured_redis(
    env_redis, world: FakeWorld, post: PostOffice  # type: ignore[no-untyped-def]
) -> None:
    world.add_person("a")
    post.send_letter(target_id="a", origin_location_id="town-1", origin_kind=LocationKind.town)

    save_post_office(post=post)
    assert list_worlds(r=env_redis) == ["w1"]

    post.restore(PostOfficeSnapshot())
    assert load_post_office(post=post) is True
    assert [l.target_id for l in post.ledger] == ["a"]
