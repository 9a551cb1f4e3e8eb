from __future__ import annotations

import pytest
from pydantic import ValidationError

from courier.config import LocationKind, PostSettings, settings_from_env
from courier.infra.redis_client import create_redis, get_redis_url


def test_defaults() -> None:
    s = PostSettings()
    assert (s.cost, s.flat_delay_days, s.speed) == (50, 3, 50)
    assert s.use_realistic_timing is True
    assert s.show_notifications is True


@pytest.mark.parametrize(
    "field,value",
    [("cost", 9), ("cost", 1001), ("flat_delay_days", 0), ("flat_delay_days", 15), ("speed", 5), ("speed", 201)],
)
def test_out_of_range_values_rejected(field: str, value: int) -> None:
    with pytest.raises(ValidationError):
        PostSettings(**{field: value})


def test_settings_are_immutable() -> None:
    s = PostSettings()
    with pytest.raises(ValidationError):
        s.cost = 100  # type: ignore[misc]


@pytest.mark.parametrize(
    "kind,towns,castles,expected",
    [
        (LocationKind.town, True, False, True),
        (LocationKind.town, False, True, False),
        (LocationKind.castle, False, True, True),
        (LocationKind.castle, True, False, False),
        (LocationKind.other, True, True, False),
        ("village", True, True, False),
    ],
)
def test_allows_sending_from(kind: str, towns: bool, castles: bool, expected: bool) -> None:
    s = PostSettings(enable_in_towns=towns, enable_in_castles=castles)
    assert s.allows_sending_from(kind) is expected


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COURIER_COST", "75")
    monkeypatch.setenv("COURIER_USE_REALISTIC_TIMING", "false")
    monkeypatch.setenv("COURIER_SPEED", "  ")
    monkeypatch.delenv("COURIER_FLAT_DELAY_DAYS", raising=False)

    s = settings_from_env()
    assert s.cost == 75
    assert s.use_realistic_timing is False
    assert s.speed == 50
    assert s.flat_delay_days == 3


def test_settings_from_env_validates(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COURIER_FLAT_DELAY_DAYS", "30")
    with pytest.raises(ValidationError):
        settings_from_env()


def test_redis_url_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("COURIER_REDIS_URL", raising=False)
    assert get_redis_url() == "redis://localhost:6379/0"
    monkeypatch.setenv("COURIER_REDIS_URL", "redis://cache:6380/2")
    assert get_redis_url() == "redis://cache:6380/2"


def test_create_redis_decodes_responses(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COURIER_REDIS_URL", "redis://cache:6380/2")
    client = create_redis()
    kwargs = client.connection_pool.connection_kwargs
    assert kwargs["decode_responses"] is True
    assert kwargs["host"] == "cache"
    assert kwargs["db"] == 2


def test_create_redis_explicit_url_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COURIER_REDIS_URL", "redis://cache:6380/2")
    kwargs = create_redis("redis://other:6379/5").connection_pool.connection_kwargs
    assert kwargs["host"] == "other"
    assert kwargs["db"] == 5
