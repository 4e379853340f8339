from __future__ import annotations

import math

import pytest

from core.bet_manager import BetManager
from core.exceptions import InvariantViolation
from models import (
    EngineEventType,
    EngineState,
    Phase,
    PlayerPosition,
    RejectReason,
    Round,
)
from services.multiplier_service import DEFAULT_CURVE


def _countdown(balance: float = 100.0, **changes) -> EngineState:
    return EngineState(phase=Phase.COUNTDOWN, round=Round(round_id=1), balance=balance, **changes)


def _active(multiplier: float, position: PlayerPosition, crash_point: float = 5.0, balance: float = 90.0) -> EngineState:
    return EngineState(
        phase=Phase.ACTIVE,
        round=Round(round_id=1, crash_point=crash_point, started_at=100.0),
        current_multiplier=multiplier,
        balance=balance,
        position=position,
    )


def _position(**changes) -> PlayerPosition:
    values = dict(round_id=1, amount=10.0, placed_at=99.0)
    values.update(changes)
    return PlayerPosition(**values)


def test_place_bet_debits_balance_and_opens_position() -> None:
    state, result, events = BetManager.place_bet(_countdown(), 10.0, 50.0)

    assert result.ok
    assert state.balance == 90.0
    assert state.position == PlayerPosition(round_id=1, amount=10.0, placed_at=50.0)
    assert [e.event_type for e in events] == [EngineEventType.BET_PLACED]
    assert events[0].data["actor"] == "you"
    assert events[0].data["amount"] == 10.0


@pytest.mark.parametrize("amount", [0, -5, math.nan, math.inf, True])
def test_place_bet_rejects_invalid_amounts(amount: float) -> None:
    before = _countdown()
    state, result, events = BetManager.place_bet(before, amount, 50.0)

    assert not result.ok
    assert result.reason == RejectReason.INVALID_AMOUNT
    assert state is before
    assert events == ()


def test_place_bet_rejects_amount_over_balance() -> None:
    _, result, _ = BetManager.place_bet(_countdown(balance=5.0), 10.0, 50.0)

    assert result.reason == RejectReason.INSUFFICIENT_BALANCE


def test_place_bet_allows_whole_balance() -> None:
    state, result, _ = BetManager.place_bet(_countdown(balance=10.0), 10.0, 50.0)

    assert result.ok
    assert state.balance == 0.0


@pytest.mark.parametrize("phase", [Phase.WAITING, Phase.ACTIVE, Phase.CRASHED])
def test_place_bet_only_during_countdown(phase: Phase) -> None:
    _, result, _ = BetManager.place_bet(EngineState(phase=phase, balance=100.0), 10.0, 50.0)

    assert result.reason == RejectReason.BETTING_CLOSED


def test_second_bet_in_same_round_is_rejected() -> None:
    state, _, _ = BetManager.place_bet(_countdown(), 10.0, 50.0)
    again, result, _ = BetManager.place_bet(state, 10.0, 50.5)

    assert result.reason == RejectReason.POSITION_ALREADY_OPEN
    assert again.balance == 90.0


def test_bet_carries_current_auto_cash_out_preference() -> None:
    state, _, events = BetManager.place_bet(_countdown(auto_cash_out_target=3.0), 10.0, 50.0)

    assert state.position.auto_cash_out_target == 3.0
    assert events[0].data["auto_cash_out_target"] == 3.0


def test_cash_out_pays_current_multiplier() -> None:
    state, result, events = BetManager.cash_out(_active(1.8, _position()), 101.0)

    assert result.ok
    assert result.payout == pytest.approx(18.0)
    assert state.balance == pytest.approx(108.0)
    assert state.position.cashed_out
    assert state.position.cash_out_multiplier == 1.8
    assert events[0].event_type == EngineEventType.CASHED_OUT
    assert events[0].data["automatic"] is False


def test_cash_out_is_idempotent() -> None:
    state, first, _ = BetManager.cash_out(_active(1.8, _position()), 101.0)
    again, second, events = BetManager.cash_out(state, 101.1)

    assert first.ok
    assert second.reason == RejectReason.ALREADY_CASHED_OUT
    assert again.balance == state.balance
    assert events == ()


def test_cash_out_without_position() -> None:
    _, result, _ = BetManager.cash_out(EngineState(phase=Phase.ACTIVE), 1.0)

    assert result.reason == RejectReason.NO_OPEN_POSITION


def test_cash_out_during_countdown_is_rejected() -> None:
    state, _, _ = BetManager.place_bet(_countdown(), 10.0, 50.0)
    _, result, _ = BetManager.cash_out(state, 50.5)

    assert result.reason == RejectReason.ROUND_NOT_ACTIVE


def test_auto_cash_out_settles_at_target_and_crossing_time() -> None:
    state = _active(3.2, _position(auto_cash_out_target=3.0))
    settled, events = BetManager.try_auto_cash_out(state, DEFAULT_CURVE)

    crossed_at = 100.0 + DEFAULT_CURVE.elapsed_for_multiplier(3.0, 5.0) / 1000.0
    assert settled.position.cash_out_multiplier == 3.0
    assert settled.balance == pytest.approx(120.0)
    assert events[0].data["payout"] == pytest.approx(30.0)
    assert events[0].data["automatic"] is True
    assert events[0].at == pytest.approx(crossed_at)


def test_auto_cash_out_waits_for_target() -> None:
    state = _active(2.9, _position(auto_cash_out_target=3.0))
    same, events = BetManager.try_auto_cash_out(state, DEFAULT_CURVE)

    assert same is state
    assert events == ()


def test_auto_cash_out_at_or_above_crash_point_never_wins() -> None:
    state = _active(5.0, _position(auto_cash_out_target=5.0), crash_point=5.0)
    same, events = BetManager.try_auto_cash_out(state, DEFAULT_CURVE)

    assert same is state
    assert events == ()


def test_settle_loss_keeps_balance() -> None:
    state = _active(2.5, _position(), crash_point=2.5)
    same, events = BetManager.settle_loss(state, 110.0)

    assert same.balance == 90.0
    assert events[0].event_type == EngineEventType.POSITION_LOST
    assert events[0].data["multiplier"] == 2.5


def test_settle_loss_ignores_cashed_out_position() -> None:
    state = _active(2.5, _position(cashed_out=True, payout=15.0, cash_out_multiplier=1.5))
    _, events = BetManager.settle_loss(state, 110.0)

    assert events == ()


@pytest.mark.parametrize("target", [1.0, 1.01, -2.0, math.nan, math.inf, True])
def test_invalid_auto_cash_out_targets(target: float) -> None:
    _, result, _ = BetManager.set_auto_cash_out_target(EngineState(), target, 0.0)

    assert result.reason == RejectReason.INVALID_TARGET


def test_set_auto_cash_out_target_updates_open_position() -> None:
    state = _active(1.5, _position(auto_cash_out_target=4.0))
    updated, result, _ = BetManager.set_auto_cash_out_target(state, 2.0, 101.0)

    assert result.ok
    assert updated.auto_cash_out_target == 2.0
    assert updated.position.auto_cash_out_target == 2.0


def test_clearing_auto_cash_out_target() -> None:
    state = EngineState(auto_cash_out_target=2.0)
    updated, result, _ = BetManager.set_auto_cash_out_target(state, None, 0.0)

    assert result.ok
    assert updated.auto_cash_out_target is None


def test_negative_balance_is_an_invariant_violation() -> None:
    state = _active(1.5, _position(), balance=-1000.0)

    with pytest.raises(InvariantViolation):
        BetManager.cash_out(state, 101.0)


def test_target_armed_mid_round_records_arm_time() -> None:
    state = _active(1.5, _position())
    updated, result, events = BetManager.set_auto_cash_out_target(state, 2.0, 101.0)

    assert result.ok
    assert updated.position.auto_armed_at == 101.0
    assert events == ()


def test_target_below_live_multiplier_cashes_out_at_live_multiplier() -> None:
    state = _active(4.0, _position())
    settled, result, events = BetManager.set_auto_cash_out_target(state, 2.0, 103.0)

    assert result.payout == pytest.approx(40.0)
    assert settled.balance == pytest.approx(130.0)
    assert settled.position.cash_out_multiplier == 4.0
    assert events[0].at == 103.0
    assert events[0].data["automatic"] is True


def test_auto_cash_out_is_never_dated_before_arming() -> None:
    # armed at 2.9x, sampled just past 3.0x; the curve crossed 3.0x before the arm time
    state = _active(3.05, _position(auto_cash_out_target=3.0, auto_armed_at=150.0))
    settled, events = BetManager.try_auto_cash_out(state, DEFAULT_CURVE)

    assert settled.position.cash_out_multiplier == 3.0
    assert events[0].at == 150.0


def test_target_set_outside_active_is_not_armed() -> None:
    state, _, _ = BetManager.place_bet(_countdown(), 10.0, 50.0)
    updated, _, events = BetManager.set_auto_cash_out_target(state, 1.5, 50.5)

    assert updated.position.auto_cash_out_target == 1.5
    assert updated.position.auto_armed_at is None
    assert events == ()
