"""
URL 解析与规范化模块

职责：
- 判断字符串是否为绝对URL，并输出其规范化字符串形式
- 将 href 相对 base URL 进行解析（RFC 3986 语义）

说明：
- 规范化输出与浏览器一致（WHATWG URL 序列化规则），
  例如 "https://example.com" 会输出为 "https://example.com/"
- 无法解析的URL返回 None，由调用方决定跳过还是报错
"""

from __future__ import annotations

import ipaddress
import re
import urllib.parse
from typing import Optional, Tuple

import idna

# 特殊scheme及其默认端口（None 表示无默认端口）
SPECIAL_SCHEMES = {
    "http": 80,
    "https": 443,
    "ws": 80,
    "wss": 443,
    "ftp": 21,
    "file": None,
}

_SCHEME_NAME = r"[A-Za-z][A-Za-z0-9+.\-]*"
_SCHEME_RE = re.compile(r"^(%s):" % _SCHEME_NAME)
# "xxx://" 形式的前缀，用于识别 scheme 写错的链接（如 "ht!tp://"）
_AUTHORITY_PREFIX_RE = re.compile(r"^([^/?#:]*)://")

_C0_OR_SPACE = "".join(chr(i) for i in range(0x21))
_TAB_OR_NEWLINE = str.maketrans("", "", "\t\n\r")

# 各组成部分需要百分号编码的字符（C0控制字符与非ASCII字符始终编码）
_FRAGMENT_SET = frozenset(' "<>`')
_QUERY_SET = frozenset(' "#<>')
_SPECIAL_QUERY_SET = _QUERY_SET | {"'"}
_PATH_SET = _QUERY_SET | frozenset("?`{}")
_USERINFO_SET = _PATH_SET | frozenset("/:;=@[\\]^|")
_OPAQUE_SET: frozenset = frozenset()

# 主机名中不允许出现的字符
_FORBIDDEN_HOST = frozenset(" #/:<>?@[\\]^|\x7f") | frozenset(chr(i) for i in range(0x20))
_FORBIDDEN_DOMAIN = _FORBIDDEN_HOST | frozenset("%")


def _prepare(url: str) -> str:
    """去除首尾的控制字符/空格，以及任意位置的制表符与换行。"""
    return url.strip(_C0_OR_SPACE).translate(_TAB_OR_NEWLINE)


def _percent_encode(text: str, encode_set: frozenset) -> str:
    out = []
    for ch in text:
        code = ord(ch)
        if code < 0x20 or code > 0x7E or ch in encode_set:
            out.append("".join("%%%02X" % b for b in ch.encode("utf-8", "replace")))
        else:
            out.append(ch)
    return "".join(out)


def _remove_dot_segments(path: str) -> str:
    """按 RFC 3986 5.2.4 去除路径中的 "." 与 ".." 段。"""
    if not path:
        return path
    leading = path.startswith("/")
    segments = path.split("/")
    if leading:
        segments = segments[1:]
    out = []
    last_index = len(segments) - 1
    for i, seg in enumerate(segments):
        if seg == ".":
            if i == last_index:
                out.append("")
        elif seg == "..":
            if out:
                out.pop()
            if i == last_index:
                out.append("")
        else:
            out.append(seg)
    result = "/".join(out)
    return "/" + result if leading else result


def _split_tail(rest: str) -> Tuple[str, Optional[str], Optional[str]]:
    """拆分出 query 与 fragment；None 表示该部分不存在（区别于空字符串）。"""
    rest, hash_mark, fragment = rest.partition("#")
    rest, question, query = rest.partition("?")
    return rest, (query if question else None), (fragment if hash_mark else None)


def _parse_port(port_raw: str, scheme: str) -> Tuple[bool, Optional[int]]:
    if not port_raw:
        return True, None
    if not (port_raw.isascii() and port_raw.isdigit()):
        return False, None
    port = int(port_raw)
    if port > 65535:
        return False, None
    if port == SPECIAL_SCHEMES.get(scheme):
        return True, None
    return True, port


_IPV4_DIGITS = {10: "0123456789", 8: "01234567", 16: "0123456789abcdef"}


def _parse_ipv4_number(part: str) -> Optional[int]:
    """解析IPv4中的单个数字段：支持 0x 前缀的十六进制与前导0的八进制。"""
    if not part:
        return None
    radix = 10
    if part[:2] in ("0x", "0X"):
        part, radix = part[2:], 16
    elif len(part) > 1 and part.startswith("0"):
        part, radix = part[1:], 8
    if not part:
        return 0
    if any(ch not in _IPV4_DIGITS[radix] for ch in part.lower()):
        return None
    return int(part, radix)


def _ends_in_number(host: str) -> bool:
    parts = host.split(".")
    if parts[-1] == "" and len(parts) > 1:
        parts.pop()
    last = parts[-1]
    if last and last.isascii() and last.isdigit():
        return True
    return _parse_ipv4_number(last) is not None


def _parse_ipv4(host: str) -> Optional[str]:
    """
    按浏览器的IPv4规则解析主机名，非法时返回 None。
    - 1~4 个数字段，最后一段填充剩余字节（"127.1" -> "127.0.0.1"）
    """
    parts = host.split(".")
    if parts[-1] == "" and len(parts) > 1:
        parts.pop()
    if len(parts) > 4:
        return None
    numbers = []
    for part in parts:
        number = _parse_ipv4_number(part)
        if number is None:
            return None
        numbers.append(number)
    if any(n > 255 for n in numbers[:-1]):
        return None
    if numbers[-1] >= 256 ** (5 - len(numbers)):
        return None
    address = numbers[-1]
    for i, n in enumerate(numbers[:-1]):
        address += n * 256 ** (3 - i)
    return str(ipaddress.IPv4Address(address))


def _normalize_host(host_raw: str, scheme: str) -> Optional[str]:
    """
    规范化主机名，非法时返回 None。
    - 特殊scheme：百分号解码、IDNA编码、转小写、校验禁用字符与IPv4
    - 其他scheme：保持原样（opaque host），仅编码控制字符与非ASCII字符
    """
    if scheme not in SPECIAL_SCHEMES:
        if any(ch in _FORBIDDEN_HOST for ch in host_raw):
            return None
        return _percent_encode(host_raw, _OPAQUE_SET)

    host = urllib.parse.unquote(host_raw)
    if not host:
        return "" if scheme == "file" else None
    if not host.isascii():
        # UTS #46 非过渡处理："faß.de" -> "xn--fa-hia.de"
        try:
            host = idna.encode(host, uts46=True).decode("ascii")
        except UnicodeError:
            return None
    host = host.lower()
    if any(ch in _FORBIDDEN_DOMAIN for ch in host):
        return None
    if _ends_in_number(host):
        return _parse_ipv4(host)
    if scheme == "file" and host == "localhost":
        return ""
    return host


def _serialize_authority(authority: str, scheme: str) -> Optional[str]:
    userinfo, at, hostport = authority.rpartition("@")
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            return None
        try:
            host = "[%s]" % ipaddress.IPv6Address(hostport[1:end]).compressed
        except ValueError:
            return None
        port_part = hostport[end + 1:]
        if port_part and not port_part.startswith(":"):
            return None
        port_raw = port_part[1:]
    else:
        host_raw, _, port_raw = hostport.partition(":")
        host = _normalize_host(host_raw, scheme)
        if host is None:
            return None

    ok, port = _parse_port(port_raw, scheme)
    if not ok:
        return None
    if port is not None and not host:
        return None

    credentials = ""
    if at:
        username, _, password = userinfo.partition(":")
        username = _percent_encode(username, _USERINFO_SET)
        password = _percent_encode(password, _USERINFO_SET)
        if username or password:
            credentials = username + (":" + password if password else "") + "@"
    return credentials + host + (":%d" % port if port is not None else "")


def _serialize_tail(query: Optional[str], fragment: Optional[str], special: bool) -> str:
    out = ""
    if query is not None:
        out += "?" + _percent_encode(query, _SPECIAL_QUERY_SET if special else _QUERY_SET)
    if fragment is not None:
        out += "#" + _percent_encode(fragment, _FRAGMENT_SET)
    return out


def parse_absolute(url: str) -> Optional[str]:
    """
    将字符串按绝对URL解析，返回规范化后的URL字符串；不是合法绝对URL时返回 None。

    - 不依赖任何 base，相对引用（如 "/a"、"//host/a"）一律返回 None
    - 特殊scheme（http/https/ws/wss/ftp/file）的空路径规范化为 "/"
    """
    url = _prepare(url)
    m = _SCHEME_RE.match(url)
    if not m:
        return None
    scheme = m.group(1).lower()
    rest, query, fragment = _split_tail(url[m.end():])
    special = scheme in SPECIAL_SCHEMES

    if special:
        rest = rest.replace("\\", "/")
        if scheme != "file":
            # 对 "http:example.com"、"http:///example.com" 等写法宽容处理
            rest = "//" + rest.lstrip("/")
        elif not rest.startswith("//"):
            rest = "///" + rest.lstrip("/")

    if rest.startswith("//"):
        authority, slash, path = rest[2:].partition("/")
        serialized = _serialize_authority(authority, scheme)
        if serialized is None:
            return None
        path = slash + path
        if special and not path:
            path = "/"
        path = _percent_encode(_remove_dot_segments(path), _PATH_SET)
        return "%s://%s%s%s" % (scheme, serialized, path, _serialize_tail(query, fragment, special))

    if rest.startswith("/"):
        path = _percent_encode(_remove_dot_segments(rest), _PATH_SET)
    else:
        # opaque path，例如 mailto:、javascript:、data:
        path = _percent_encode(rest, _OPAQUE_SET)
    return "%s:%s%s" % (scheme, path, _serialize_tail(query, fragment, special))


def _has_malformed_scheme(href: str) -> bool:
    m = _AUTHORITY_PREFIX_RE.match(href)
    if not m:
        return False
    return not re.fullmatch(_SCHEME_NAME, m.group(1))


def resolve_href(href: str, base_url: str) -> Optional[str]:
    """
    将链接的 href 解析为绝对URL。

    - 先按绝对URL解析（绝对href不会被锚定到 base 上）
    - 失败时再相对 base 解析：相对路径、协议相对（//host）、仅片段（#a）、
      仅查询（?q）以及空串（得到去掉片段的 base）
    - 两次都失败时返回 None
    """
    href = _prepare(href)
    if _has_malformed_scheme(href):
        return None

    absolute = parse_absolute(href)
    if absolute is not None:
        return absolute
    if _SCHEME_RE.match(href):
        # 带 scheme 却无法按绝对URL解析（如 "http://"），不再相对 base 解析
        return None

    base = parse_absolute(base_url)
    if base is None:
        return None
    scheme, base_rest = base.split(":", 1)
    special = scheme in SPECIAL_SCHEMES
    if special:
        # 特殊scheme下反斜杠等同于斜杠（仅限 query 之前的部分）
        m = re.search(r"[?#]", href)
        cut = m.start() if m else len(href)
        href = href[:cut].replace("\\", "/") + href[cut:]

    base_authority, base_path, base_query, _ = _split_components(base_rest)
    ref_authority, ref_path, ref_query, fragment = _split_components(href)

    if base_authority is None and not base_path.startswith("/"):
        # opaque base（如 mailto:）只接受仅片段的引用
        if ref_authority is not None or ref_path or ref_query is not None:
            return None
        return parse_absolute(_compose(scheme, None, base_path, base_query, fragment))

    # RFC 3986 5.2.2
    if ref_authority is not None:
        if special and scheme != "file" and not ref_authority:
            return None
        authority, path, query = ref_authority, _remove_dot_segments(ref_path), ref_query
    elif not ref_path:
        authority, path = base_authority, base_path
        query = ref_query if ref_query is not None else base_query
    elif ref_path.startswith("/"):
        authority, path, query = base_authority, _remove_dot_segments(ref_path), ref_query
    else:
        authority = base_authority
        path = _remove_dot_segments(_merge_paths(base_authority, base_path, ref_path))
        query = ref_query
    return parse_absolute(_compose(scheme, authority, path, query, fragment))


def _split_components(rest: str) -> Tuple[Optional[str], str, Optional[str], Optional[str]]:
    """拆分为 (authority, path, query, fragment)；authority 为 None 表示没有 "//"。"""
    rest, query, fragment = _split_tail(rest)
    if not rest.startswith("//"):
        return None, rest, query, fragment
    authority, slash, path = rest[2:].partition("/")
    return authority, slash + path, query, fragment


def _merge_paths(base_authority: Optional[str], base_path: str, ref_path: str) -> str:
    """按 RFC 3986 5.2.3 合并 base 路径与相对路径。"""
    if base_authority is not None and not base_path:
        return "/" + ref_path
    return base_path[: base_path.rfind("/") + 1] + ref_path


def _compose(
    scheme: str,
    authority: Optional[str],
    path: str,
    query: Optional[str],
    fragment: Optional[str],
) -> str:
    url = scheme + ":"
    if authority is not None:
        url += "//" + authority
    url += path
    if query is not None:
        url += "?" + query
    if fragment is not None:
        url += "#" + fragment
    return url


def is_http_url(url: str) -> bool:
    """判断是否为 http/https 绝对URL。"""
    parsed = parse_absolute(url)
    if parsed is None:
        return False
    return parsed.split(":", 1)[0] in ("http", "https")
