"""
工具函数模块

职责：
- 请求头生成（带标识性UA）
- 抖动延迟计算（用于重试退避）
- 响应类型判断
"""

from __future__ import annotations

import random
from typing import Dict, Optional


# 标识性UA：让对端能识别出请求来自链接提取器
DEFAULT_USER_AGENT = "Forest/1.0 (Link Extractor)"

# 除 text/* 以外同样按文本处理的类型
TEXT_MIME_TYPES = {
    "application/xhtml+xml",
    "application/xml",
    "application/json",
    "application/javascript",
}


def build_default_headers(user_agent: Optional[str], extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """构造默认请求头，extra 中的同名头会覆盖默认值。"""
    headers = {
        "User-Agent": user_agent or DEFAULT_USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    }
    if extra:
        headers.update(extra)
    return headers


def jitter_delay_ms(base_ms: float, rate: float = 0.3) -> float:
    """
    计算带抖动的延迟时间（毫秒）。
    - base_ms: 基础延迟
    - rate: 抖动比例（0~1），默认0.3表示在 ±30% 范围随机。
    """
    if base_ms <= 0:
        return 0
    delta = base_ms * rate
    return base_ms + random.uniform(-delta, delta)


def is_text_content_type(value: Optional[str]) -> bool:
    """根据 Content-Type 判断响应体是否为文本；缺失时视为文本。"""
    if not value:
        return True
    mime = value.split(";", 1)[0].strip().lower()
    if not mime:
        return True
    return mime.startswith("text/") or mime.endswith("+xml") or mime.endswith("+json") or mime in TEXT_MIME_TYPES
