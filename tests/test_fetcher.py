import logging

import httpx
import pytest

from fetch_links.config import FetchConfig
from fetch_links.fetcher import (
    Fetcher,
    FetchError,
    InvalidBaseUrl,
    ResponseBodyError,
    fetch_links,
    validate_base_url,
)
from fetch_links.parser import LinkInfo
from fetch_links.utils import DEFAULT_USER_AGENT

PAGE = """
<html>
  <body>
    <a href="/relative">Relative Link</a>
    <a href="https://example.org/absolute">Absolute Link</a>
  </body>
</html>
"""


def _page_handler(calls):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, html=PAGE)

    return handler


@pytest.mark.asyncio
async def test_fetch_links_from_url():
    calls = []
    links = await fetch_links("http://127.0.0.1:8080/test", transport=httpx.MockTransport(_page_handler(calls)))

    assert links == [
        LinkInfo(url="http://127.0.0.1:8080/relative", text="Relative Link"),
        LinkInfo(url="https://example.org/absolute", text="Absolute Link"),
    ]
    assert len(calls) == 1
    assert calls[0].method == "GET"
    assert calls[0].headers["user-agent"] == DEFAULT_USER_AGENT


@pytest.mark.asyncio
async def test_custom_user_agent_and_headers():
    calls = []
    cfg = FetchConfig(user_agent="TestAgent/2.0", headers={"X-Trace": "1"})
    await fetch_links("https://example.com/", cfg, transport=httpx.MockTransport(_page_handler(calls)))
    assert calls[0].headers["user-agent"] == "TestAgent/2.0"
    assert calls[0].headers["x-trace"] == "1"


@pytest.mark.asyncio
async def test_invalid_base_url_is_rejected_before_request():
    calls = []
    with pytest.raises(InvalidBaseUrl):
        await fetch_links("http://exa mple.com/", transport=httpx.MockTransport(_page_handler(calls)))
    assert calls == []


def test_validate_base_url():
    assert validate_base_url("https://example.com") == "https://example.com/"
    with pytest.raises(ValueError):
        validate_base_url("not a url")


@pytest.mark.asyncio
async def test_transport_error_maps_to_fetch_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchError) as exc_info:
        await fetch_links("https://example.com/", transport=httpx.MockTransport(handler))
    assert "Failed to fetch URL" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_network_error_is_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectTimeout("timed out", request=request)
        return httpx.Response(200, html=PAGE)

    cfg = FetchConfig(max_retries=2, retry_backoff_initial_ms=0, retry_backoff_max_ms=0)
    links = await fetch_links("https://example.com/", cfg, transport=httpx.MockTransport(handler))
    assert len(attempts) == 2
    assert len(links) == 2


@pytest.mark.asyncio
async def test_retryable_status_is_retried():
    statuses = iter([503, 200])
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(next(statuses), html=PAGE)

    cfg = FetchConfig(max_retries=1, retry_backoff_initial_ms=0, retry_backoff_max_ms=0)
    links = await fetch_links("https://example.com/", cfg, transport=httpx.MockTransport(handler))
    assert len(attempts) == 2
    assert links[0].url == "https://example.com/relative"


@pytest.mark.asyncio
async def test_single_request_by_default():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(503, html='<a href="/status">Status</a>')

    links = await fetch_links("https://example.com/", transport=httpx.MockTransport(handler))
    assert len(attempts) == 1
    assert links == [LinkInfo(url="https://example.com/status", text="Status")]


@pytest.mark.asyncio
async def test_non_text_body_raises():
    def handler(request):
        return httpx.Response(200, content=b"\x89PNG\r\n", headers={"content-type": "image/png"})

    with pytest.raises(ResponseBodyError):
        await fetch_links("https://example.com/logo.png", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_non_text_body_allowed_when_check_disabled():
    def handler(request):
        return httpx.Response(200, content=b"<a href='/x'>X</a>", headers={"content-type": "application/octet-stream"})

    cfg = FetchConfig(require_text_content=False)
    links = await fetch_links("https://example.com/", cfg, transport=httpx.MockTransport(handler))
    assert links == [LinkInfo(url="https://example.com/x", text="X")]


@pytest.mark.asyncio
async def test_fetcher_context_manager_closes_client():
    async with Fetcher(transport=httpx.MockTransport(_page_handler([]))) as fetcher:
        text = await fetcher.fetch("https://example.com/")
        assert "Relative Link" in text
    assert fetcher.client.is_closed


@pytest.mark.asyncio
async def test_body_decoding_error_maps_to_response_body_error():
    def handler(request):
        raise httpx.DecodingError("invalid gzip data", request=request)

    with pytest.raises(ResponseBodyError) as exc_info:
        await fetch_links("https://example.com/", transport=httpx.MockTransport(handler))
    assert "Failed to read response body" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, httpx.DecodingError)


@pytest.mark.asyncio
async def test_network_retry_logs_warning(caplog):
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200, html=PAGE)

    cfg = FetchConfig(max_retries=1, retry_backoff_initial_ms=0, retry_backoff_max_ms=0)
    with caplog.at_level(logging.WARNING, logger="fetch_links.fetcher"):
        await fetch_links("https://example.com/", cfg, transport=httpx.MockTransport(handler))

    retry_records = [r for r in caplog.records if "Network error" in r.getMessage()]
    assert len(retry_records) == 1
    assert retry_records[0].levelno == logging.WARNING
