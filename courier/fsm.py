from __future__ import annotations

from enum import StrEnum

from statemachine import State, StateMachine

from courier.queue import DeferredTriggerSet


class SessionPhase(StrEnum):
    idle = "idle"
    presenting = "presenting"
    deferred = "deferred"


class SessionFSM(StateMachine):
    """Guards the one-at-a-time response session.

    - idle: nothing presenting, nobody waiting in the deferred set
    - presenting: exactly one session is open (a queued letter or a deferred target)
    - deferred: nothing presenting, at least one deferred target waiting

    Opening a second session while presenting raises TransitionNotAllowed.
    """

    idle = State(SessionPhase.idle.value, value=SessionPhase.idle.value, initial=True)
    presenting = State(SessionPhase.presenting.value, value=SessionPhase.presenting.value)
    deferred = State(SessionPhase.deferred.value, value=SessionPhase.deferred.value)

    open_session = idle.to(presenting) | deferred.to(presenting)
    defer = idle.to(deferred) | deferred.to.itself()
    close_session = presenting.to(deferred, cond="has_deferred") | presenting.to(idle, unless="has_deferred")
    settle = deferred.to(idle)

    def __init__(self, deferred_targets: DeferredTriggerSet, *, start: SessionPhase | None = None):
        self.deferred_targets = deferred_targets
        if start is None:
            start = SessionPhase.deferred if len(deferred_targets) else SessionPhase.idle
        super().__init__(start_value=start.value)

    def has_deferred(self) -> bool:
        return len(self.deferred_targets) > 0

    @property
    def phase(self) -> SessionPhase:
        return SessionPhase(str(self.current_state.value))

    @property
    def is_presenting(self) -> bool:
        return self.phase == SessionPhase.presenting
