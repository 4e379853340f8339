"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- CrashPointService：crash point 產生（可替換的隨機來源）
- MultiplierService：倍率曲線
- PayoffService：派彩計算
- StatsService / HistoryService：統計 reducer 與回合歷史分析
- NamingService / BotActivityService：機器人名稱與顯示用的下注活動
- NotificationService：事件轉通知
"""
