"""
API 的 Request / Response 模型
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, computed_field

from models import FeedEventType, Phase, RejectReason
from services import payoff_service


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ============ Request ============

class BetSubmit(BaseModel):
    amount: float


class AutoCashOutSubmit(BaseModel):
    target: Optional[float] = None


# ============ Response ============

class CommandResponse(BaseModel):
    ok: bool
    reason: Optional[RejectReason] = None
    payout: Optional[float] = None
    balance: float


class PositionResponse(ORMModel):
    round_id: int
    amount: float
    placed_at: float
    cashed_out: bool
    auto_cash_out_target: Optional[float] = None
    cash_out_multiplier: Optional[float] = None
    payout: Optional[float] = None

    @computed_field
    @property
    def net_result(self) -> float:
        return payoff_service.net_result(self)


class FeedEventResponse(ORMModel):
    id: str
    type: FeedEventType
    actor: str
    amount: float
    multiplier: Optional[float] = None
    timestamp: float


class RoundHistoryResponse(ORMModel):
    round_id: int
    crash_point: float
    ended_at: float


class GameStatsResponse(ORMModel):
    total_bets_volume: float
    biggest_win: float
    biggest_multiplier: float
    rounds_completed: int


class StateResponse(ORMModel):
    phase: Phase
    round_id: int
    current_multiplier: float
    crash_point: Optional[float] = None
    time_remaining_in_phase: Optional[float] = None
    balance: float
    position: Optional[PositionResponse] = None
    auto_cash_out_target: Optional[float] = None
    feed_events: List[FeedEventResponse]
    round_history: List[RoundHistoryResponse]
    game_stats: GameStatsResponse
    version: int


class HistoryAnalyticsResponse(BaseModel):
    recent_average: Optional[float] = None
    volatility_level: str
    hot_streak: int
    cold_streak: int
    profitability_score: float
    risk_distribution: Dict[str, float]


class HistoryResponse(BaseModel):
    rounds: List[RoundHistoryResponse]
    crash_points: List[float]
    analytics: HistoryAnalyticsResponse
