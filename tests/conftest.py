from __future__ import annotations

import random
from typing import Iterable, List

import pytest

from config import Settings
from core.engine import RoundEngine
from core.recorder import EventRecorder
from models import EngineEvent, Phase
from services.crash_point_service import FixedCrashPointSource

START_TIME = 1_000.0

# 1 ms past the crossing instant keeps the floored display value on the target
CROSSING_NUDGE = 1e-6


class FakeClock:
    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


def make_settings(**overrides) -> Settings:
    values = dict(
        starting_balance=100.0,
        waiting_delay_seconds=1.0,
        countdown_min_seconds=2.0,
        countdown_max_seconds=2.0,
        crashed_delay_seconds=3.0,
        crash_point_source="random",
        bot_activity_enabled=False,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class EventLog:
    """Subscriber that keeps every engine event in order."""

    def __init__(self) -> None:
        self.events: List[EngineEvent] = []

    def __call__(self, event: EngineEvent) -> None:
        self.events.append(event)

    def types(self) -> List[str]:
        return [event.event_type.value for event in self.events]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_engine(clock):
    def factory(crash_points: Iterable[float] = (2.5,), **overrides) -> RoundEngine:
        return RoundEngine(
            make_settings(**overrides),
            crash_point_source=FixedCrashPointSource(crash_points),
            rng=random.Random(7),
            clock=clock,
        )

    return factory


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder(feed_retention=100, history_retention=50)


def enter_countdown(engine: RoundEngine, clock: FakeClock) -> None:
    if not engine.is_running:
        engine.start()
    clock.now = engine.state.phase_ends_at
    engine.poll()
    assert engine.state.phase == Phase.COUNTDOWN


def launch(engine: RoundEngine, clock: FakeClock) -> None:
    if engine.state.phase != Phase.COUNTDOWN:
        enter_countdown(engine, clock)
    clock.now = engine.state.phase_ends_at
    engine.poll()
    assert engine.state.phase == Phase.ACTIVE


def move_to_multiplier(engine: RoundEngine, clock: FakeClock, multiplier: float) -> None:
    state = engine.state
    elapsed_ms = engine.rules.curve.elapsed_for_multiplier(multiplier, state.round.crash_point)
    clock.now = state.round.started_at + elapsed_ms / 1000.0 + CROSSING_NUDGE
    engine.poll()


def crash_time(engine: RoundEngine) -> float:
    state = engine.state
    duration_ms = engine.rules.curve.target_duration_ms(state.round.crash_point)
    return state.round.started_at + duration_ms / 1000.0 + CROSSING_NUDGE
