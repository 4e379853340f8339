"""
機器人活動服務：產生第三方玩家的下注 / 提領 feed，讓畫面看起來熱鬧

純顯示用途：
- 只寫進 Recorder 的 feed（record_feed），不影響 stats
- 不碰 Engine，不影響任何結算
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import logging
import random
import threading
import time

from models import EngineEvent, EngineEventType, FeedEvent, FeedEventType
from services.naming_service import generate_bot_name, new_feed_id

logger = logging.getLogger(__name__)

LAUNCH_DELAY_SECONDS = 0.2
SPREAD_SECONDS = 3.0
CASH_OUT_RATIO = 0.5


@dataclass(frozen=True)
class BotBet:
    actor: str
    amount: float
    delay: float


def plan_bot_bets(rng: random.Random, min_count: int = 5, max_count: int = 12) -> List[BotBet]:
    """
    規劃一回合的機器人下注

    規則：
    - 數量：[min_count, max_count]
    - 金額：1 ~ 101
    - 延遲：起飛後 0.2 秒開始，分散在 3 秒內

    參數：
        rng: 亂數產生器

    返回：
        BotBet 列表
    """
    count = rng.randint(min_count, max_count)
    return [
        BotBet(
            actor=generate_bot_name(rng),
            amount=round(rng.uniform(1, 101), 2),
            delay=LAUNCH_DELAY_SECONDS + rng.uniform(0, SPREAD_SECONDS),
        )
        for _ in range(count)
    ]


def plan_bot_cash_outs(
    rng: random.Random,
    bets: List[BotBet],
    crash_point: float,
    ratio: float = CASH_OUT_RATIO,
) -> List[Tuple[BotBet, float]]:
    """
    規劃回合結束時有哪些機器人「提領成功」

    規則：
    - 每個機器人以 ratio 機率提領
    - 提領倍率落在 [1.01, crash_point) 內
    - crash_point <= 1.01（開場即爆）時沒有人能提領
    """
    if crash_point <= 1.01:
        return []

    cash_outs = []
    for bet in bets:
        if rng.random() < ratio:
            multiplier = round(rng.uniform(1.01, crash_point), 2)
            cash_outs.append((bet, min(multiplier, crash_point - 0.01)))
    return cash_outs


class BotActivitySimulator:
    """
    Engine subscriber：回合起飛時排程機器人下注，回合爆掉時補上機器人提領

    timers 為 None 時（例如沒有 event loop 的測試），下注直接寫入 feed
    """

    def __init__(
        self,
        recorder,
        timers=None,
        rng: Optional[random.Random] = None,
        min_count: int = 5,
        max_count: int = 12,
        clock: Callable[[], float] = time.time,
    ):
        self.recorder = recorder
        self.timers = timers
        self.rng = rng or random.Random()
        self.min_count = min_count
        self.max_count = max_count
        self.clock = clock

        self._lock = threading.Lock()
        self._placed: Dict[int, List[BotBet]] = {}

    def __call__(self, event: EngineEvent) -> None:
        if event.event_type == EngineEventType.ROUND_LAUNCHED:
            self._on_launch(event.round_id)
        elif event.event_type == EngineEventType.ROUND_CRASHED:
            self._on_crash(event.round_id, event.data["crash_point"], event.at)

    def _on_launch(self, round_id: int) -> None:
        with self._lock:
            self._placed = {round_id: []}
            bets = plan_bot_bets(self.rng, self.min_count, self.max_count)

        for bet in bets:
            if self.timers is None:
                self._place(round_id, bet)
            else:
                self.timers.call_later(bet.delay, self._place, round_id, bet)

    def _place(self, round_id: int, bet: BotBet) -> None:
        with self._lock:
            placed = self._placed.get(round_id)
            if placed is None:
                # 回合已結束，丟掉過期的下注
                return
            placed.append(bet)

        self.recorder.record_feed(FeedEvent(
            id=new_feed_id(),
            type=FeedEventType.BET,
            actor=bet.actor,
            amount=bet.amount,
            timestamp=self.clock(),
        ))

    def _on_crash(self, round_id: int, crash_point: float, at: float) -> None:
        with self._lock:
            bets = self._placed.pop(round_id, [])
            cash_outs = plan_bot_cash_outs(self.rng, bets, crash_point)

        for bet, multiplier in cash_outs:
            self.recorder.record_feed(FeedEvent(
                id=new_feed_id(),
                type=FeedEventType.CASHOUT,
                actor=bet.actor,
                amount=bet.amount,
                timestamp=at,
                multiplier=multiplier,
            ))

        logger.debug(f"Round {round_id}: {len(bets)} bot bets, {len(cash_outs)} bot cash-outs")
