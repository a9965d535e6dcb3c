"""
Coinjoin participation state machine.

Models the auto/manual coinjoin controls of a wallet:

    AUTO_COINJOIN (superstate)          MANUAL_COINJOIN (superstate)
      AUTO_STARTING -> countdown          STOPPED
      PAUSED                              MANUAL_PLAYING
      AUTO_PLAYING

transition() is pure: it maps (status, event) to a new status plus a list of
effects for the caller to execute (start/stop coinjoining the wallet). Timer
ticks are ordinary events. Control visibility is derived from the state by
controls() instead of being stored.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from loguru import logger


class State(str, Enum):
    """Coinjoin participation states"""

    AUTO_COINJOIN = "auto_coinjoin"
    AUTO_STARTING = "auto_starting"
    PAUSED = "paused"
    AUTO_PLAYING = "auto_playing"

    MANUAL_COINJOIN = "manual_coinjoin"
    STOPPED = "stopped"
    MANUAL_PLAYING = "manual_playing"


class Trigger(str, Enum):
    AUTO_COINJOIN_ON = "auto_coinjoin_on"
    AUTO_COINJOIN_OFF = "auto_coinjoin_off"
    PLAY = "play"
    PAUSE = "pause"
    STOP = "stop"
    PLEB_STOP = "pleb_stop"
    ROUND_START = "round_start"
    ROUND_START_FAILED = "round_start_failed"


class Effect(str, Enum):
    START_COINJOIN = "start_coinjoin"
    STOP_COINJOIN = "stop_coinjoin"


@dataclass(frozen=True)
class Fire:
    """User or coordinator trigger"""

    trigger: Trigger
    now: float


@dataclass(frozen=True)
class Tick:
    """Periodic timer tick"""

    now: float


@dataclass(frozen=True)
class RoundStarting:
    """The coinjoin manager announced when the next auto-start happens"""

    now: float
    starting_in: float


Event = Fire | Tick | RoundStarting


_PARENT: dict[State, State] = {
    State.AUTO_STARTING: State.AUTO_COINJOIN,
    State.PAUSED: State.AUTO_COINJOIN,
    State.AUTO_PLAYING: State.AUTO_COINJOIN,
    State.STOPPED: State.MANUAL_COINJOIN,
    State.MANUAL_PLAYING: State.MANUAL_COINJOIN,
}

# Superstates immediately descend into their initial substate
_INITIAL: dict[State, State] = {
    State.AUTO_COINJOIN: State.AUTO_STARTING,
    State.MANUAL_COINJOIN: State.STOPPED,
}

_PERMITTED: dict[tuple[State, Trigger], State] = {
    (State.MANUAL_COINJOIN, Trigger.AUTO_COINJOIN_ON): State.AUTO_COINJOIN,
    (State.STOPPED, Trigger.PLAY): State.MANUAL_PLAYING,
    (State.MANUAL_PLAYING, Trigger.STOP): State.STOPPED,
    (State.AUTO_COINJOIN, Trigger.AUTO_COINJOIN_OFF): State.MANUAL_COINJOIN,
    (State.AUTO_STARTING, Trigger.PAUSE): State.PAUSED,
    (State.AUTO_STARTING, Trigger.ROUND_START): State.AUTO_PLAYING,
    (State.AUTO_STARTING, Trigger.PLAY): State.AUTO_PLAYING,
    (State.PAUSED, Trigger.PLAY): State.AUTO_PLAYING,
    (State.AUTO_PLAYING, Trigger.PAUSE): State.PAUSED,
    (State.AUTO_PLAYING, Trigger.PLEB_STOP): State.PAUSED,
    (State.AUTO_PLAYING, Trigger.ROUND_START_FAILED): State.PAUSED,
    (State.AUTO_PLAYING, Trigger.ROUND_START): State.AUTO_PLAYING,
}

_MESSAGES: dict[State, str] = {
    State.AUTO_STARTING: "Waiting to auto-start coinjoin",
    State.PAUSED: "Coinjoin is paused",
    State.AUTO_PLAYING: "Coinjoining",
    State.STOPPED: "Coinjoin is stopped",
    State.MANUAL_PLAYING: "Coinjoining",
}


@dataclass(frozen=True)
class CoinJoinStatus:
    """Current state plus countdown bookkeeping (times in seconds)"""

    state: State
    countdown_started: float | None = None
    auto_start_time: float | None = None
    elapsed: float = 0.0
    remaining: float = 0.0
    progress: float = 0.0


@dataclass(frozen=True)
class Controls:
    """What the coinjoin controls should show for a status"""

    is_auto: bool
    is_auto_waiting: bool
    play_visible: bool
    pause_visible: bool
    stop_visible: bool
    message: str


def is_within(state: State, ancestor: State) -> bool:
    """True if state is ancestor or one of its substates"""
    current: State | None = state
    while current is not None:
        if current == ancestor:
            return True
        current = _PARENT.get(current)
    return False


def _resolve(state: State, trigger: Trigger) -> State | None:
    """Find the target for trigger, searching from the state up through its superstates"""
    current: State | None = state
    while current is not None:
        target = _PERMITTED.get((current, trigger))
        if target is not None:
            return target
        current = _PARENT.get(current)
    return None


def _enter(status: CoinJoinStatus, state: State, now: float) -> tuple[CoinJoinStatus, list[Effect]]:
    """Run entry actions for state, descending into the initial substate of a superstate"""
    effects: list[Effect] = []

    while state in _INITIAL:
        state = _INITIAL[state]

    if state == State.AUTO_STARTING:
        status = replace(
            status, state=state, countdown_started=now, elapsed=0.0, remaining=0.0, progress=0.0
        )
    elif state == State.PAUSED:
        status = replace(status, state=state, progress=0.0)
        effects.append(Effect.STOP_COINJOIN)
    elif state == State.AUTO_PLAYING:
        status = replace(status, state=state)
        effects.append(Effect.START_COINJOIN)
    elif state == State.STOPPED:
        status = replace(status, state=state, progress=0.0)
        effects.append(Effect.STOP_COINJOIN)
    elif state == State.MANUAL_PLAYING:
        status = replace(status, state=state)
        effects.append(Effect.START_COINJOIN)

    return status, effects


def _exit(status: CoinJoinStatus) -> CoinJoinStatus:
    if status.state == State.AUTO_STARTING:
        return replace(status, countdown_started=None)
    return status


def _tick(status: CoinJoinStatus, now: float) -> CoinJoinStatus:
    if status.state != State.AUTO_STARTING or status.countdown_started is None:
        return status

    elapsed = max(0.0, now - status.countdown_started)
    if status.auto_start_time is None:
        return replace(status, elapsed=elapsed)

    total = status.auto_start_time - status.countdown_started
    remaining = max(0.0, status.auto_start_time - now)
    progress = 100.0 if total <= 0 else min(100.0, elapsed * 100 / total)
    return replace(status, elapsed=elapsed, remaining=remaining, progress=progress)


def initial_status(auto_coinjoin: bool, now: float) -> tuple[CoinJoinStatus, list[Effect]]:
    """Start the machine in the auto or manual superstate"""
    root = State.AUTO_COINJOIN if auto_coinjoin else State.MANUAL_COINJOIN
    return _enter(CoinJoinStatus(state=root), root, now)


def transition(status: CoinJoinStatus, event: Event) -> tuple[CoinJoinStatus, list[Effect]]:
    """
    Apply one event.

    Triggers not permitted in the current state leave the status unchanged
    and produce no effects.
    """
    if isinstance(event, Tick):
        return _tick(status, event.now), []

    if isinstance(event, RoundStarting):
        return replace(status, auto_start_time=event.now + event.starting_in), []

    target = _resolve(status.state, event.trigger)
    if target is None:
        return status, []

    return _enter(_exit(status), target, event.now)


def controls(status: CoinJoinStatus) -> Controls:
    state = status.state
    return Controls(
        is_auto=is_within(state, State.AUTO_COINJOIN),
        is_auto_waiting=state in (State.AUTO_STARTING, State.PAUSED),
        play_visible=state in (State.AUTO_STARTING, State.PAUSED, State.STOPPED),
        pause_visible=state == State.AUTO_PLAYING,
        stop_visible=state == State.MANUAL_PLAYING,
        message=_MESSAGES.get(state, ""),
    )


class CoinJoinStateMachine:
    """
    Stateful wrapper around transition() for a single wallet.

    Collects the effects of each event so the caller can start or stop
    coinjoining; logs every state change.
    """

    def __init__(self, auto_coinjoin: bool, now: float):
        self.status, self.pending_effects = initial_status(auto_coinjoin, now)

    @property
    def state(self) -> State:
        return self.status.state

    def handle(self, event: Event) -> list[Effect]:
        """Apply event and return its effects"""
        previous = self.status.state
        self.status, effects = transition(self.status, event)

        if isinstance(event, Fire):
            if effects or self.status.state != previous:
                logger.debug(
                    f"Trigger {event.trigger.value} moved coinjoin state "
                    f"{previous.value} -> {self.status.state.value}"
                )
            else:
                logger.debug(f"Trigger {event.trigger.value} ignored in state {previous.value}")

        self.pending_effects.extend(effects)
        return effects

    def fire(self, trigger: Trigger, now: float) -> list[Effect]:
        return self.handle(Fire(trigger=trigger, now=now))

    def set_auto_coinjoin(self, enabled: bool, now: float) -> list[Effect]:
        trigger = Trigger.AUTO_COINJOIN_ON if enabled else Trigger.AUTO_COINJOIN_OFF
        return self.fire(trigger, now)

    def take_effects(self) -> list[Effect]:
        """Return and clear effects not yet executed"""
        effects, self.pending_effects = self.pending_effects, []
        return effects

    def controls(self) -> Controls:
        return controls(self.status)
