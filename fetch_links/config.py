"""
配置模块

职责：
- 定义抓取配置数据结构（使用 Python 标准库 dataclasses）
- 从 JSON 文件加载配置，并进行基本校验与默认值填充

说明：
- 不提供配置文件时使用默认值：单次请求、不重试、30秒超时
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Dict

from .utils import DEFAULT_USER_AGENT


@dataclass
class FetchConfig:
    user_agent: str = DEFAULT_USER_AGENT
    timeout_s: float = 30.0
    # 默认只发起一次请求；>0 时对网络错误与 403/429/5xx 进行退避重试
    max_retries: int = 0
    retry_backoff_initial_ms: int = 500
    retry_backoff_max_ms: int = 8000
    http2: bool = True
    follow_redirects: bool = True
    # 开启时，Content-Type 明确为非文本（如 image/png）的响应视为读取失败
    require_text_content: bool = True
    # 额外请求头，会覆盖同名默认头
    headers: Dict[str, str] = field(default_factory=dict)


def validate_config(cfg: FetchConfig) -> FetchConfig:
    """校验取值范围，非法时抛出 ValueError。"""
    if not cfg.user_agent:
        raise ValueError("user_agent 不能为空")
    if cfg.timeout_s <= 0:
        raise ValueError(f"timeout_s 必须大于0: {cfg.timeout_s}")
    if cfg.max_retries < 0:
        raise ValueError(f"max_retries 不能为负数: {cfg.max_retries}")
    if cfg.retry_backoff_initial_ms < 0 or cfg.retry_backoff_max_ms < 0:
        raise ValueError("退避时间不能为负数")
    return cfg


def load_config(path: str) -> FetchConfig:
    """
    从 JSON 文件加载配置，返回 FetchConfig 对象。

    - 未出现的字段使用 dataclass 默认值
    - 进行类型转换与取值范围校验
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"配置文件不存在: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"配置文件顶层必须是JSON对象: {path}")

    defaults = FetchConfig()
    cfg = FetchConfig(
        user_agent=_get_str(raw, "user_agent", defaults.user_agent),
        timeout_s=_get_number(raw, "timeout_s", defaults.timeout_s, float),
        max_retries=_get_number(raw, "max_retries", defaults.max_retries, int),
        retry_backoff_initial_ms=_get_number(raw, "retry_backoff_initial_ms", defaults.retry_backoff_initial_ms, int),
        retry_backoff_max_ms=_get_number(raw, "retry_backoff_max_ms", defaults.retry_backoff_max_ms, int),
        http2=_get_bool(raw, "http2", defaults.http2),
        follow_redirects=_get_bool(raw, "follow_redirects", defaults.follow_redirects),
        require_text_content=_get_bool(raw, "require_text_content", defaults.require_text_content),
        headers=_get_headers(raw),
    )
    return validate_config(cfg)


def _get_str(raw: dict, key: str, default: str) -> str:
    value = raw.get(key, default)
    if not isinstance(value, str):
        raise ValueError(f"{key} 必须是字符串: {value!r}")
    return value


def _get_number(raw: dict, key: str, default, cast):
    value = raw.get(key, default)
    # bool 是 int 的子类，需单独排除
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} 必须是数字: {value!r}")
    return cast(value)


def _get_bool(raw: dict, key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{key} 必须是 true/false: {value!r}")
    return value


def _get_headers(raw: dict) -> Dict[str, str]:
    value = raw.get("headers") or {}
    if not isinstance(value, dict):
        raise ValueError(f"headers 必须是JSON对象: {value!r}")
    if not all(isinstance(v, str) for v in value.values()):
        raise ValueError("headers 的值必须是字符串")
    return dict(value)
