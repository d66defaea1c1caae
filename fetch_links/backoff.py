"""
重试退避模块

职责：
- 网络错误与可重试状态码的指数退避策略

注意：本模块不直接进行网络请求，仅提供等待时间的计算。
"""

from __future__ import annotations

from .utils import jitter_delay_ms

# 可重试的HTTP状态码
RETRYABLE_STATUS = (403, 429, 500, 502, 503)


class BackoffStrategy:
    """
    指数退避策略：根据尝试次数计算等待时间，带上限与抖动。
    """

    def __init__(self, initial_ms: int, max_ms: int) -> None:
        self.initial_ms = initial_ms
        self.max_ms = max_ms

    def compute_delay_ms(self, attempt: int) -> float:
        base = min(self.initial_ms * (2 ** max(0, attempt - 1)), self.max_ms)
        # 抖动：±20%
        return jitter_delay_ms(base, rate=0.2)
