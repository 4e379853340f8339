"""
領域模型

Engine 的狀態全部是 immutable dataclass：
- 每次狀態轉換都產生新的 EngineState（不在原物件上修改）
- Engine 以單一指派提交新狀態，外部讀到的 snapshot 不會有撕裂
"""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple, Optional, Tuple

PLAYER_ACTOR = "you"


class Phase(str, Enum):
    WAITING = "waiting"
    COUNTDOWN = "countdown"
    ACTIVE = "active"
    CRASHED = "crashed"


class EngineEventType(str, Enum):
    COUNTDOWN_STARTED = "COUNTDOWN_STARTED"
    ROUND_LAUNCHED = "ROUND_LAUNCHED"
    BET_PLACED = "BET_PLACED"
    CASHED_OUT = "CASHED_OUT"
    POSITION_LOST = "POSITION_LOST"
    ROUND_CRASHED = "ROUND_CRASHED"


class FeedEventType(str, Enum):
    BET = "bet"
    CASHOUT = "cashout"
    CRASH = "crash"


class RejectReason(str, Enum):
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    BETTING_CLOSED = "betting_closed"
    POSITION_ALREADY_OPEN = "position_already_open"
    NO_OPEN_POSITION = "no_open_position"
    ROUND_NOT_ACTIVE = "round_not_active"
    ALREADY_CASHED_OUT = "already_cashed_out"
    INVALID_TARGET = "invalid_target"
    ENGINE_STOPPED = "engine_stopped"


@dataclass(frozen=True)
class Round:
    """一個回合；crash_point 在 COUNTDOWN -> ACTIVE 時產生，之後不再改變"""
    round_id: int = 0
    crash_point: Optional[float] = None
    started_at: Optional[float] = None


@dataclass(frozen=True)
class PlayerPosition:
    """本地玩家在單一回合內的下注"""
    round_id: int
    amount: float
    placed_at: float
    cashed_out: bool = False
    auto_cash_out_target: Optional[float] = None
    cash_out_multiplier: Optional[float] = None
    payout: Optional[float] = None
    # ACTIVE 期間設定自動提領的時間
    auto_armed_at: Optional[float] = None


@dataclass(frozen=True)
class EngineState:
    phase: Phase = Phase.WAITING
    round: Round = field(default_factory=Round)
    phase_started_at: Optional[float] = None
    phase_ends_at: Optional[float] = None
    current_multiplier: float = 1.0
    balance: float = 0.0
    position: Optional[PlayerPosition] = None
    auto_cash_out_target: Optional[float] = None
    version: int = 0


@dataclass(frozen=True)
class EngineEvent:
    """
    Engine 發出的事件（類似 EventLog：event_type + data）

    Recorder、通知、機器人模擬都只透過事件得知 Engine 發生了什麼
    """
    event_type: EngineEventType
    round_id: int
    at: float
    data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))


@dataclass(frozen=True)
class FeedEvent:
    id: str
    type: FeedEventType
    actor: str
    amount: float
    timestamp: float
    multiplier: Optional[float] = None


@dataclass(frozen=True)
class RoundHistoryEntry:
    round_id: int
    crash_point: float
    ended_at: float


@dataclass(frozen=True)
class GameStats:
    total_bets_volume: float = 0.0
    biggest_win: float = 0.0
    biggest_multiplier: float = 0.0
    rounds_completed: int = 0


@dataclass(frozen=True)
class CommandResult:
    """
    指令結果

    一般的拒絕（餘額不足、時機不對）用 ok=False + reason 表示，不丟例外
    balance 是這個指令提交後的餘額（由 Engine 在鎖內填入）
    """
    ok: bool
    reason: Optional[RejectReason] = None
    payout: Optional[float] = None
    balance: Optional[float] = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def accepted(cls, payout: Optional[float] = None) -> "CommandResult":
        return cls(ok=True, payout=payout)

    @classmethod
    def rejected(cls, reason: RejectReason) -> "CommandResult":
        return cls(ok=False, reason=reason)


@dataclass(frozen=True)
class Snapshot:
    phase: Phase
    round_id: int
    current_multiplier: float
    crash_point: Optional[float]
    time_remaining_in_phase: Optional[float]
    balance: float
    position: Optional[PlayerPosition]
    auto_cash_out_target: Optional[float]
    feed_events: tuple = ()
    round_history: tuple = ()
    game_stats: GameStats = field(default_factory=GameStats)
    version: int = 0


class Transition(NamedTuple):
    """純函數狀態轉換的結果：下一個狀態 + 這次轉換產生的事件（依發生順序）"""
    state: EngineState
    events: Tuple[EngineEvent, ...] = ()


class CommandOutcome(NamedTuple):
    state: EngineState
    result: CommandResult
    events: Tuple[EngineEvent, ...] = ()
