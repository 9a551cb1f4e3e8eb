from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


class RecallProvider(Protocol):
    name: str

    def try_recall(self, target_location_id: str) -> bool:  # pragma: no cover
        ...


@dataclass(frozen=True, slots=True)
class AttributeRecallProvider:
    """Probe an owner object for a recall method.

    Looks up `owner().<attribute>.<method>` at call time, since host builds differ
    in which object (player party, campaign, clan) carries the fleet anchor.
    Missing pieces mean "not available here", not an error.
    """

    name: str
    owner: Callable[[], object | None]
    attribute: str = "anchor"
    method: str = "call_fleet"

    def try_recall(self, target_location_id: str) -> bool:
        owner = self.owner()
        if owner is None:
            return False
        anchor = getattr(owner, self.attribute, None)
        if anchor is None:
            return False
        call = getattr(anchor, self.method, None)
        if not callable(call):
            return False
        call(target_location_id)
        return True


class RankedRecall:
    """Try providers in rank order until one performs the recall."""

    def __init__(self, providers: Sequence[RecallProvider] = ()) -> None:
        self.providers = tuple(providers)

    def try_recall(self, target_location_id: str) -> bool:
        for provider in self.providers:
            try:
                if provider.try_recall(target_location_id):
                    logger.info("Recall to %s performed by %s", target_location_id, provider.name)
                    return True
            except Exception:
                # Fall through to the next provider.
                logger.warning("Recall provider %s failed", provider.name, exc_info=True)
        logger.warning("No recall provider could recall to %s", target_location_id)
        return False
