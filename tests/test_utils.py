import pytest

from fetch_links.backoff import BackoffStrategy
from fetch_links.utils import DEFAULT_USER_AGENT, build_default_headers, is_text_content_type, jitter_delay_ms


def test_build_default_headers():
    headers = build_default_headers(None)
    assert headers["User-Agent"] == DEFAULT_USER_AGENT
    assert "text/html" in headers["Accept"]


def test_build_default_headers_extra_overrides():
    headers = build_default_headers("Bot/1.0", {"Accept": "*/*", "X-A": "1"})
    assert headers == {"User-Agent": "Bot/1.0", "Accept": "*/*", "X-A": "1"}


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, True),
        ("", True),
        ("text/html; charset=utf-8", True),
        ("TEXT/PLAIN", True),
        ("application/xhtml+xml", True),
        ("application/rss+xml", True),
        ("application/json", True),
        ("image/png", False),
        ("application/octet-stream", False),
        ("application/pdf", False),
    ],
)
def test_is_text_content_type(value, expected):
    assert is_text_content_type(value) is expected


def test_jitter_delay_bounds():
    assert jitter_delay_ms(0) == 0
    for _ in range(50):
        assert 70 <= jitter_delay_ms(100, rate=0.3) <= 130


def test_backoff_grows_and_caps():
    backoff = BackoffStrategy(100, 1000)
    for _ in range(20):
        assert 80 <= backoff.compute_delay_ms(1) <= 120
        assert 160 <= backoff.compute_delay_ms(2) <= 240
        assert 800 <= backoff.compute_delay_ms(10) <= 1200


def test_backoff_zero_initial():
    assert BackoffStrategy(0, 0).compute_delay_ms(3) == 0
