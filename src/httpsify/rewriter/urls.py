"""URL finding and normalisation helpers for the text rewriter."""

from __future__ import annotations

import re
from typing import List
from urllib.parse import urlsplit, urlunsplit

# "Gruber revised" URL finder, changed to insist that candidates start with
# ``http:``: the permissive form backtracks catastrophically on unterminated
# CSS such as ``image:url(http://img.youtube.com/vi/x7f``. Nested quantifiers
# of the form (X+)+ are flattened to X+, which matches the same text.
FIND_URI_RE = re.compile(
    r"\b("
    r"(?:http:(?:/{1,3}|[a-z0-9%])|www\d{0,3}[.]|[a-z0-9.\-]+[.][a-z]{2,4}/)"
    r"[^\s()<>]+"
    r"(?:\((?:[^\s()<>]|\([^\s()<>]+\))*\)|[^\s`!()\[\]{};:'\".,<>?«»“”‘’])"
    r")",
    re.IGNORECASE,
)

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")
_PCT_RE = re.compile(r"%([0-9A-Fa-f]{2})")
_UNRESERVED = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
)
_DEFAULT_PORTS = {"http": 80, "https": 443}


def with_scheme(url: str, scheme: str) -> str:
    """Return *url* with its scheme replaced, leaving every other byte alone."""
    m = _SCHEME_RE.match(url)
    if m is None:
        return url
    return f"{scheme}:{url[m.end():]}"


def _normalise_escapes(component: str) -> str:
    """Upper-case percent escapes and decode the ones for unreserved characters."""

    def fix(m: re.Match[str]) -> str:
        char = chr(int(m.group(1), 16))
        if char in _UNRESERVED:
            return char
        return "%" + m.group(1).upper()

    return _PCT_RE.sub(fix, component)


def _remove_dot_segments(path: str) -> str:
    """RFC 3986 section 5.2.4 for an absolute path; empty segments are kept."""
    if "." not in path:
        return path
    segments = path.split("/")[1:]
    out: List[str] = []
    for segment in segments:
        if segment == ".":
            continue
        if segment == "..":
            if out:
                out.pop()
            continue
        out.append(segment)
    if segments[-1] in (".", ".."):
        out.append("")
    return "/" + "/".join(out)


def normalise_url(url: str) -> str:
    """Canonical form of an absolute URL.

    Lower-cases scheme and host, drops the scheme's default port, gives an
    empty path a ``/``, resolves dot segments, and canonicalises percent
    escapes. Raises ``ValueError`` for URLs ``urlsplit`` cannot handle.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()

    netloc = parts.netloc
    if netloc:
        userinfo, _, _ = netloc.rpartition("@")
        host = parts.hostname or ""
        if ":" in host:
            host = f"[{host}]"
        port = parts.port
        netloc = host
        if port is not None and port != _DEFAULT_PORTS.get(scheme):
            netloc = f"{host}:{port}"
        if userinfo:
            netloc = f"{userinfo}@{netloc}"

    path = parts.path
    if not path and netloc:
        path = "/"
    elif path.startswith("/"):
        path = _remove_dot_segments(path)

    return urlunsplit((
        scheme,
        netloc,
        _normalise_escapes(path),
        _normalise_escapes(parts.query),
        _normalise_escapes(parts.fragment),
    ))
