"""封装日期计算的常用辅助函数。"""

from datetime import date, timedelta
from typing import List, Optional


def trailing_days(days: int, today: Optional[date] = None) -> List[date]:
    """
    功能说明:
        返回截至 `today`（包含当天）的最近 `days` 个自然日，按时间正序排列。
    参数:
        days (int): 包含的天数，至少为 1。
        today (Optional[date]): 截止日期，默认今天。
    返回:
        List[date]: 日期列表。
    """
    end = today or date.today()
    count = max(days, 1)
    return [end - timedelta(days=offset) for offset in range(count - 1, -1, -1)]


def month_day_label(day: date) -> str:
    """将日期格式化为图表使用的 `MM-DD` 标签。"""
    return day.strftime("%m-%d")
