from __future__ import annotations

import math

from courier.config import PostSettings

Position = tuple[float, float]

# Fixed dispatch overhead, independent of distance.
HANDLING_DAYS = 1


def planar_distance(a: Position, b: Position) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def estimate_days(*, origin: Position | None, target: Position | None, settings: PostSettings) -> int:
    """Whole days until a letter sent from `origin` to `target` matures.

    Positions are sampled once by the caller at send time. Without realistic
    timing, or when either end has no position, the flat delay applies.
    """

    if not settings.use_realistic_timing or origin is None or target is None:
        return settings.flat_delay_days

    travel_days = planar_distance(origin, target) / settings.speed
    return max(1, HANDLING_DAYS + math.ceil(travel_days))
