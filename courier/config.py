from __future__ import annotations

import os
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class LocationKind(StrEnum):
    town = "town"
    castle = "castle"
    other = "other"


class PostSettings(BaseModel):
    """Tunables for sending letters and timing their delivery.

    Passed explicitly into the post office; nothing reads settings from a global.
    """

    model_config = ConfigDict(frozen=True)

    # Currency paid per letter or recall order.
    cost: int = Field(50, ge=10, le=1000)

    # Delay used when realistic timing is off or a position can't be resolved.
    flat_delay_days: int = Field(3, ge=1, le=14)

    use_realistic_timing: bool = True

    # Map units covered per day.
    speed: int = Field(50, ge=10, le=200)

    enable_in_towns: bool = True
    enable_in_castles: bool = True

    # Only silences arrival/availability notices; failures are always reported.
    show_notifications: bool = True

    def allows_sending_from(self, kind: LocationKind | str) -> bool:
        if kind == LocationKind.town:
            return self.enable_in_towns
        if kind == LocationKind.castle:
            return self.enable_in_castles
        return False


ENV_VARS: dict[str, str] = {
    "cost": "COURIER_COST",
    "flat_delay_days": "COURIER_FLAT_DELAY_DAYS",
    "use_realistic_timing": "COURIER_USE_REALISTIC_TIMING",
    "speed": "COURIER_SPEED",
    "enable_in_towns": "COURIER_ENABLE_IN_TOWNS",
    "enable_in_castles": "COURIER_ENABLE_IN_CASTLES",
    "show_notifications": "COURIER_SHOW_NOTIFICATIONS",
}


def settings_from_env() -> PostSettings:
    """Build settings from COURIER_* environment variables.

    Unset variables keep their defaults. Values are validated by pydantic, so
    "true"/"0"/"75" style strings are accepted and out-of-range numbers raise.
    """

    values: dict[str, str] = {}
    for field_name, env_name in ENV_VARS.items():
        raw = os.environ.get(env_name)
        if raw is not None and raw.strip():
            values[field_name] = raw.strip()
    return PostSettings.model_validate(values)
