"""
解析模块

职责：
- 提供宽容的HTML解析（BeautifulSoup + html5lib，遵循HTML5解析算法的纠错规则）
- 提取文档中的 <a href> 链接：解析为绝对URL，并规范化链接文字

说明：
- 纯函数，无I/O；网络抓取见 fetcher 模块
- 无法解析的 href 直接跳过，不影响后续链接
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

from .urls import resolve_href

logger = logging.getLogger(__name__)

# 不计入链接文字的节点类型
_NON_TEXT_TYPES = (Comment, Declaration, Doctype, ProcessingInstruction)


@dataclass(frozen=True)
class LinkInfo:
    """单个链接：规范化后的绝对URL与规范化后的文字。"""

    url: str
    text: str


def parse_document(html: str) -> BeautifulSoup:
    """
    将HTML文本解析为文档树。
    - 对未闭合标签、未知元素、错误嵌套等按HTML5规则自动修复，不抛异常
    """
    return BeautifulSoup(html, "html5lib")


def normalize_link_text(text: str) -> str:
    """按任意空白切分后以单个空格拼接（同时去掉首尾空白）。"""
    return " ".join(text.split())


def _text_content(element: Tag) -> str:
    return "".join(
        node for node in element.descendants
        if isinstance(node, NavigableString) and not isinstance(node, _NON_TEXT_TYPES)
    )


def extract_links(html: str, base_url: str) -> List[LinkInfo]:
    """
    从HTML中按文档顺序提取所有 <a href> 链接。

    - href 先按绝对URL解析，失败再相对 base_url 解析；都失败则跳过该链接
    - 文字为元素及其所有后代文本节点的拼接，再经 normalize_link_text 处理
    - 不去重，不区分站内/站外
    """
    soup = parse_document(html)
    links: List[LinkInfo] = []
    for a in soup.select("a[href]"):
        href = a.get("href", "")
        url = resolve_href(href, base_url)
        if url is None:
            logger.debug("Skip unresolvable href: %r", href)
            continue
        links.append(LinkInfo(url=url, text=normalize_link_text(_text_content(a))))
    return links
