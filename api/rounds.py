"""
Round API Endpoints - 短輪詢版

重點：
1. 前端靠 GET /state 短輪詢取得最新快照，用 version 判斷是否有更新
2. 每次讀取都會先把 Engine 推進到目前時間，倍率永遠是當下的值
3. crash point 只有在 CRASHED 才公開
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

import logging

from runtime import GameRuntime, get_runtime
from schemas import (
    FeedEventResponse,
    GameStatsResponse,
    HistoryAnalyticsResponse,
    HistoryResponse,
    RoundHistoryResponse,
    StateResponse,
)
from services.history_service import crash_points, summarize_history

router = APIRouter(prefix="/api/game", tags=["rounds"])
logger = logging.getLogger(__name__)


@router.get("/state", response_model=StateResponse)
def get_state(runtime: GameRuntime = Depends(get_runtime)):
    """
    取得遊戲快照

    返回：
        - phase / round_id / current_multiplier
        - crash_point: 只有 CRASHED 時有值
        - time_remaining_in_phase: ACTIVE 時為 None
        - balance / position / auto_cash_out_target
        - feed_events / round_history（最新的在前）/ game_stats
        - version: 狀態版本號，每次變更 +1
    """
    try:
        snapshot = runtime.snapshot()
        return StateResponse.model_validate(snapshot, from_attributes=True)

    except Exception as e:
        logger.error(f"Failed to get state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/history", response_model=HistoryResponse)
def get_history(runtime: GameRuntime = Depends(get_runtime)):
    """
    取得回合歷史與分析

    返回：
        - rounds: 最近的回合（最新的在前）
        - crash_points: 同順序的 crash point 列表（畫圖用）
        - analytics: 平均、波動度、連勝 / 連敗、獲利比例、風險分佈
    """
    try:
        runtime.engine.poll()
        history = runtime.recorder.round_history()
        return HistoryResponse(
            rounds=[RoundHistoryResponse.model_validate(entry) for entry in history],
            crash_points=crash_points(history),
            analytics=HistoryAnalyticsResponse(**summarize_history(history)),
        )

    except Exception as e:
        logger.error(f"Failed to get history: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/stats", response_model=GameStatsResponse)
def get_stats(runtime: GameRuntime = Depends(get_runtime)):
    try:
        runtime.engine.poll()
        return GameStatsResponse.model_validate(runtime.recorder.stats)

    except Exception as e:
        logger.error(f"Failed to get stats: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/feed", response_model=List[FeedEventResponse])
def get_feed(
    limit: int = Query(20, ge=1, le=100),
    runtime: GameRuntime = Depends(get_runtime)
):
    """
    取得最新的 feed（最新的在前）

    參數：
        limit: 筆數（1-100，預設 20）
    """
    try:
        runtime.engine.poll()
        return [
            FeedEventResponse.model_validate(event)
            for event in runtime.recorder.feed_events(limit)
        ]

    except Exception as e:
        logger.error(f"Failed to get feed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
