"""
CLI 入口模块

用法：
    fetch-links https://example.com
    python -m fetch_links.cli https://example.com --config config.json --indent 0

说明：
- 校验URL（仅支持 http/https），抓取页面并以JSON数组输出链接。
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import List, Optional

from .config import FetchConfig, load_config
from .fetcher import FetchLinksError, fetch_links
from .urls import is_http_url


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

USAGE = "Usage: fetch-links <url> [--config FILE] [--indent N] [-v]"


async def main(url: str, config_path: Optional[str] = None, indent: int = 2) -> int:
    if not is_http_url(url):
        print("Invalid URL. Please provide a valid http or https URL.", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        return 1

    try:
        cfg = load_config(config_path) if config_path else FetchConfig()
        links = await fetch_links(url, cfg)
    except (FetchLinksError, OSError, ValueError) as e:
        print(f"Failed to fetch links: {e}", file=sys.stderr)
        return 1

    # LinkInfo -> dict 仅在输出边界进行
    payload = [asdict(link) for link in links]
    print(json.dumps(payload, ensure_ascii=False, indent=indent or None))
    return 0


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(prog="fetch-links", description="抓取页面并提取其中的链接")
    ap.add_argument("url", help="页面URL（http/https）")
    ap.add_argument("--config", default=None, help="配置文件路径（JSON）")
    ap.add_argument("--indent", type=int, default=2, help="JSON缩进，0表示单行输出")
    ap.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")
    return ap.parse_args(argv)


def run(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    return asyncio.run(main(args.url, args.config, args.indent))


if __name__ == "__main__":
    sys.exit(run())
