"""
抓取器模块

职责：
- 校验 base URL，执行单次HTTP GET（带标识性UA）
- 将网络层错误映射为本模块的异常（FetchError 等），与提取逻辑的“总是成功”区分开
- 把响应文本与请求URL交给 parser.extract_links

说明：
- 重试默认关闭；开启后对网络错误与 403/429/5xx 进行指数退避
- 相对链接以“请求URL”为基准解析（而非重定向后的最终URL）
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

import httpx

from .backoff import RETRYABLE_STATUS, BackoffStrategy
from .config import FetchConfig
from .parser import LinkInfo, extract_links
from .urls import parse_absolute
from .utils import DEFAULT_USER_AGENT, build_default_headers, is_text_content_type

logger = logging.getLogger(__name__)


class FetchLinksError(Exception):
    """抓取链路上所有错误的基类。"""


class InvalidBaseUrl(FetchLinksError, ValueError):
    """base URL 无法解析，在发起请求之前抛出。"""

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid URL: {url!r}")
        self.url = url


class FetchError(FetchLinksError):
    """网络层错误：连接失败、超时、协议不支持、请求URL非法等。"""


class ResponseBodyError(FetchLinksError):
    """响应体无法作为文本读取。"""


def validate_base_url(url: str) -> str:
    """返回规范化后的 base URL；无法解析时抛出 InvalidBaseUrl。"""
    parsed = parse_absolute(url)
    if parsed is None:
        raise InvalidBaseUrl(url)
    return parsed


class Fetcher:
    """
    链接抓取器：一个 httpx.AsyncClient 加上重试与错误映射。

    - transport 参数可注入自定义传输层（测试中使用 httpx.MockTransport）
    - 支持 async with 用法，退出时关闭连接池
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_s: float = 30.0,
        max_retries: int = 0,
        backoff_initial_ms: int = 500,
        backoff_max_ms: int = 8000,
        http2: bool = True,
        follow_redirects: bool = True,
        require_text_content: bool = True,
        extra_headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.backoff = BackoffStrategy(backoff_initial_ms, backoff_max_ms)
        self.max_retries = max_retries
        self.require_text_content = require_text_content

        # 使用HTTP/2 + 合理的超时（如站点不支持HTTP/2，httpx会回退）
        self.client = httpx.AsyncClient(
            http2=http2,
            timeout=httpx.Timeout(timeout_s),
            follow_redirects=follow_redirects,
            headers=build_default_headers(user_agent, extra_headers),
            transport=transport,
        )

    @classmethod
    def from_config(cls, cfg: FetchConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> "Fetcher":
        return cls(
            user_agent=cfg.user_agent,
            timeout_s=cfg.timeout_s,
            max_retries=cfg.max_retries,
            backoff_initial_ms=cfg.retry_backoff_initial_ms,
            backoff_max_ms=cfg.retry_backoff_max_ms,
            http2=cfg.http2,
            follow_redirects=cfg.follow_redirects,
            require_text_content=cfg.require_text_content,
            extra_headers=cfg.headers,
            transport=transport,
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _sleep_before_retry(self, attempt: int) -> float:
        delay_ms = self.backoff.compute_delay_ms(attempt + 1)
        await asyncio.sleep(delay_ms / 1000.0)
        return delay_ms

    async def fetch(self, url: str) -> str:
        """
        执行HTTP GET，返回响应文本。
        - 网络错误抛出 FetchError；非文本响应抛出 ResponseBodyError
        - 可重试状态码在重试次数用尽后，仍返回最后一次的响应文本
        """
        attempt = 0
        while True:
            try:
                r = await self.client.get(url)
            except (httpx.UnsupportedProtocol, httpx.InvalidURL) as e:
                # 请求本身非法，重试没有意义
                raise FetchError(f"Failed to fetch URL: {e}") from e
            except httpx.DecodingError as e:
                # 响应体解码失败（如错误的 gzip 数据）归入读取响应体的错误
                raise ResponseBodyError(f"Failed to read response body: {e}") from e
            except httpx.RequestError as e:
                if attempt >= self.max_retries:
                    logger.error("Network error on %s: %s", url, e)
                    raise FetchError(f"Failed to fetch URL: {e}") from e
                delay_ms = await self._sleep_before_retry(attempt)
                logger.warning("Network error on %s: %s; retried after %.0fms", url, e, delay_ms)
                attempt += 1
                continue

            if r.status_code in RETRYABLE_STATUS and attempt < self.max_retries:
                delay_ms = await self._sleep_before_retry(attempt)
                logger.warning("%s -> %s; retried after %.0fms", r.status_code, url, delay_ms)
                attempt += 1
                continue

            return self._read_text(r)

    def _read_text(self, r: httpx.Response) -> str:
        content_type = r.headers.get("content-type")
        if self.require_text_content and not is_text_content_type(content_type):
            raise ResponseBodyError(f"Failed to read response body: unsupported content type {content_type!r}")
        try:
            return r.text
        except (UnicodeDecodeError, LookupError) as e:
            raise ResponseBodyError(f"Failed to read response body: {e}") from e

    async def fetch_links(self, url: str) -> List[LinkInfo]:
        """
        抓取页面并提取链接。
        - base URL 非法时在请求前抛出 InvalidBaseUrl
        """
        base_url = validate_base_url(url)
        html = await self.fetch(base_url)
        links = extract_links(html, base_url)
        logger.info("Extracted %d links from %s", len(links), base_url)
        return links


async def fetch_links(
    url: str,
    config: Optional[FetchConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[LinkInfo]:
    """单次调用的便捷入口：创建抓取器、抓取并提取链接、关闭连接。"""
    async with Fetcher.from_config(config or FetchConfig(), transport=transport) as fetcher:
        return await fetcher.fetch_links(url)
