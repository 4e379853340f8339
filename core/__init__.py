"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理所有階段轉換
- Engine：持有唯一的遊戲狀態，提供 snapshot 與指令
- Manager：下注 / 提領 / 自動提領的結算
- Recorder：feed、回合歷史、統計
- Runner / Locks：計時器與並發控制
"""
