from __future__ import annotations

import random
from dataclasses import replace

import pytest

from core.exceptions import InvalidStateTransition, InvariantViolation
from core.state_machine import EngineRules, RoundStateMachine
from models import EngineEventType, EngineState, Phase, PlayerPosition
from services.crash_point_service import FixedCrashPointSource

RULES = EngineRules(countdown_min_seconds=2.0, countdown_max_seconds=2.0)


class _NotANumberSource:
    def compute_crash_point(self, round_id: int) -> float:
        return float("nan")


def _advance(state: EngineState, now: float, crash_points=(2.5,)):
    return RoundStateMachine.advance(
        state, now, RULES, FixedCrashPointSource(crash_points), random.Random(0)
    )


def _countdown_state(now: float = 0.0) -> EngineState:
    state = RoundStateMachine.start(EngineState(balance=100.0), now, RULES)
    state, _ = _advance(state, now + RULES.waiting_delay_seconds)
    return state


def test_start_schedules_first_countdown() -> None:
    state = RoundStateMachine.start(EngineState(balance=100.0), 10.0, RULES)

    assert state.phase == Phase.WAITING
    assert state.round.round_id == 0
    assert state.phase_ends_at == 11.0
    assert state.version == 1


def test_waiting_stays_put_before_deadline() -> None:
    state = RoundStateMachine.start(EngineState(), 0.0, RULES)
    same, events = _advance(state, 0.5)

    assert same is state
    assert events == ()


def test_full_cycle_of_phases() -> None:
    state = _countdown_state()
    assert state.phase == Phase.COUNTDOWN
    assert state.round.round_id == 1
    assert state.round.crash_point is None
    assert state.phase_ends_at == pytest.approx(3.0)

    state, events = _advance(state, 3.0)
    assert state.phase == Phase.ACTIVE
    assert state.round.crash_point == 2.5
    assert state.round.started_at == 3.0
    assert state.current_multiplier == 1.0
    assert [e.event_type for e in events] == [EngineEventType.ROUND_LAUNCHED]

    crash_at = 3.0 + RULES.curve.target_duration_ms(2.5) / 1000.0 + 0.001
    state, events = _advance(state, crash_at)
    assert state.phase == Phase.CRASHED
    assert state.current_multiplier == 2.5
    assert [e.event_type for e in events] == [EngineEventType.ROUND_CRASHED]
    assert events[0].data["crash_point"] == 2.5

    state, events = _advance(state, state.phase_ends_at)
    assert state.phase == Phase.COUNTDOWN
    assert state.round.round_id == 2
    assert state.current_multiplier == 1.0
    assert [e.event_type for e in events] == [EngineEventType.COUNTDOWN_STARTED]


def test_large_time_jump_advances_at_most_one_step_per_phase() -> None:
    state = RoundStateMachine.start(EngineState(), 0.0, RULES)
    state, events = _advance(state, 10_000.0)

    # WAITING -> COUNTDOWN only; the new countdown starts at the jump time
    assert state.phase == Phase.COUNTDOWN
    assert state.round.round_id == 1
    assert [e.event_type for e in events] == [EngineEventType.COUNTDOWN_STARTED]


def test_launch_is_followed_by_a_sample_in_the_same_advance() -> None:
    state = _countdown_state()
    state, _ = _advance(state, 3.0, crash_points=(1.01,))

    assert state.phase == Phase.ACTIVE
    assert state.current_multiplier == 1.0


@pytest.mark.parametrize(
    "current, target",
    [
        (Phase.WAITING, Phase.ACTIVE),
        (Phase.COUNTDOWN, Phase.CRASHED),
        (Phase.ACTIVE, Phase.COUNTDOWN),
        (Phase.CRASHED, Phase.ACTIVE),
        (Phase.CRASHED, Phase.WAITING),
    ],
)
def test_illegal_transitions_raise(current: Phase, target: Phase) -> None:
    with pytest.raises(InvalidStateTransition):
        RoundStateMachine.transition(EngineState(phase=current), target, 0.0)


def test_multiplier_never_decreases_when_clock_goes_back() -> None:
    state = _countdown_state()
    state, _ = _advance(state, 3.0, crash_points=(10.0,))
    state, _ = _advance(state, 8.0)
    high = state.current_multiplier

    state, _ = _advance(state, 5.0)

    assert state.current_multiplier == high
    assert high > 1.0


def test_crash_settles_open_position_as_loss() -> None:
    state = _countdown_state()
    state, _ = _advance(state, 3.0)
    position = PlayerPosition(round_id=1, amount=10.0, placed_at=2.0)
    state = replace(state, position=position, balance=90.0)

    crashed, events = RoundStateMachine.crash(state, 9.0, RULES)

    assert [e.event_type for e in events] == [
        EngineEventType.POSITION_LOST,
        EngineEventType.ROUND_CRASHED,
    ]
    assert events[0].data["multiplier"] == 2.5
    assert crashed.balance == 90.0
    assert crashed.phase_ends_at == 9.0 + RULES.crashed_delay_seconds


@pytest.mark.parametrize("bad_point", [1.0, 0.5])
def test_crash_point_below_minimum_is_an_invariant_violation(bad_point: float) -> None:
    state = _countdown_state()

    with pytest.raises(InvariantViolation):
        _advance(state, 3.0, crash_points=(bad_point,))


def test_non_numeric_crash_point_is_an_invariant_violation() -> None:
    state = _countdown_state()

    with pytest.raises(InvariantViolation):
        RoundStateMachine.launch(state, 3.0, RULES, _NotANumberSource())


def test_version_increases_on_every_change() -> None:
    state = RoundStateMachine.start(EngineState(), 0.0, RULES)
    versions = [state.version]
    for now in (1.0, 3.0, 4.0):
        state, _ = _advance(state, now)
        versions.append(state.version)

    assert versions == sorted(set(versions))


def test_crash_point_above_maximum_is_an_invariant_violation() -> None:
    state = _countdown_state()

    with pytest.raises(InvariantViolation):
        _advance(state, 3.0, crash_points=(1000.5,))
