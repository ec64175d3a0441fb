"""Forward proxy that fetches through the HTTPS rewriter.

Each connection runs on its own thread (``ThreadingHTTPServer``); all of
them share one ``HttpsRewriter``. The proxy only speaks plain HTTP to its
clients: ``CONNECT`` tunnels are refused, so no TLS interception happens.
"""

from __future__ import annotations

import logging
import re
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import urlsplit

import requests

from httpsify.config.schema import ProxyConfig
from httpsify.cookies import Cookie
from httpsify.engine import HttpsRewriter

log = logging.getLogger(__name__)

# Methods whose request body is forwarded upstream
CAN_HAVE_BODY = frozenset({"POST", "PUT", "PATCH", "DELETE"})

HOP_BY_HOP = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})

# requests decodes these for us; anything else would reach us undecoded
ACCEPT_ENCODING = "gzip, deflate"

_COOKIE_DOMAIN_RE = re.compile(r";\s*domain\s*=\s*([^;]+)", re.IGNORECASE)
_COOKIE_SECURE_RE = re.compile(r";\s*secure\s*(?:;|$)", re.IGNORECASE)


def forward_request_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Client request headers that should travel upstream."""
    out: Dict[str, str] = {}
    for key, value in headers.items():
        lower = key.lower()
        if lower in HOP_BY_HOP or lower in ("host", "content-length", "accept-encoding"):
            continue
        out[key] = value
    out["Accept-Encoding"] = ACCEPT_ENCODING
    return out


def filter_response_headers(pairs: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
    """Upstream response headers to copy back to the client.

    The body is re-encoded and re-measured by the proxy, so the upstream
    framing headers are dropped.
    """
    return [
        (key, value)
        for key, value in pairs
        if key.lower() not in HOP_BY_HOP
        and key.lower() not in ("content-encoding", "content-length")
    ]


def should_rewrite_body(content_type: Optional[str], config: ProxyConfig) -> bool:
    """Whether a response body with *content_type* goes through the rewriter."""
    if not config.rewrite_pages:
        return False
    if content_type is None or config.aggressive:
        return True
    return content_type.strip().lower().startswith("text/")


def secure_set_cookie(
    header: str,
    default_domain: str,
    known_https: bool,
    rewriter: HttpsRewriter,
) -> str:
    """Append ``Secure`` to a Set-Cookie value when a ruleset asks for it."""
    if _COOKIE_SECURE_RE.search(header):
        return header
    name = header.split(";", 1)[0].split("=", 1)[0].strip()
    if not name:
        return header
    m = _COOKIE_DOMAIN_RE.search(header)
    domain = m.group(1).strip() if m else default_domain
    ruleset = rewriter.should_secure_cookie(Cookie(domain=domain, name=name), known_https)
    if ruleset is None:
        return header
    log.debug("Securing cookie %s for %s (ruleset %s)", name, domain, ruleset.display_name)
    return header + "; Secure"


def make_session(config: ProxyConfig) -> requests.Session:
    session = requests.Session()
    session.trust_env = config.trust_env
    session.max_redirects = config.max_redirects
    if config.upstream_proxy:
        session.proxies = {"http": config.upstream_proxy, "https": config.upstream_proxy}
    return session


def _decode(content: bytes, encoding: Optional[str]) -> Tuple[str, str]:
    charset = encoding or "utf-8"
    try:
        return content.decode(charset, errors="surrogateescape"), charset
    except LookupError:
        return content.decode("utf-8", errors="surrogateescape"), "utf-8"


class ProxyHandler(BaseHTTPRequestHandler):
    """Handles one client connection."""

    server: "ProxyServer"
    server_version = "httpsify"

    def do_GET(self) -> None:
        self._proxy()

    do_HEAD = do_POST = do_PUT = do_PATCH = do_DELETE = do_OPTIONS = do_GET

    def do_CONNECT(self) -> None:
        self.send_error(405, "CONNECT tunnels are not supported")

    def log_message(self, format: str, *args) -> None:
        log.info("%s - %s", self.address_string(), format % args)

    # ---- request flow ----

    def _read_body(self) -> Optional[bytes]:
        length = self.headers.get("Content-Length")
        if not length:
            return None
        return self.rfile.read(int(length))

    def _proxy(self) -> None:
        url = self.path
        if not url.lower().startswith(("http://", "https://")):
            self.send_error(400, "Proxy requests need an absolute URL")
            return

        rewriter = self.server.rewriter
        config = self.server.config
        target = rewriter.rewrite_url(url)
        if target != url:
            log.info("Upgraded %s -> %s", url, target)

        try:
            body = self._read_body() if self.command in CAN_HAVE_BODY else None
        except ValueError:
            self.send_error(400, "Invalid Content-Length")
            return

        log.debug("REQUEST FOR %s HEADERS %s", target, dict(self.headers))
        try:
            with make_session(config) as session:
                response = session.request(
                    self.command,
                    target,
                    headers=forward_request_headers(self.headers),
                    data=body,
                    allow_redirects=config.follow_redirects,
                    verify=config.verify_ssl,
                    timeout=config.timeout,
                )
                content = response.content
        except requests.RequestException as exc:
            self._report_error(exc)
            return
        log.debug("RESPONSE FOR %s HEADERS %s", target, dict(response.headers))

        if should_rewrite_body(response.headers.get("Content-Type"), config):
            text, charset = _decode(content, response.encoding)
            content = rewriter.rewrite_page_content(text).encode(
                charset, errors="surrogateescape"
            )

        final = urlsplit(response.url or target)
        headers = filter_response_headers(response.raw.headers.iteritems())
        if config.secure_cookies:
            headers = [
                (
                    key,
                    secure_set_cookie(
                        value, final.hostname or "", final.scheme == "https", rewriter
                    )
                    if key.lower() == "set-cookie"
                    else value,
                )
                for key, value in headers
            ]

        self.send_response_only(response.status_code, response.reason)
        for key, value in headers:
            self.send_header(key, value)
        self.send_header("Content-Length", str(len(content)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(content)
        self.log_request(response.status_code, len(content))

    def _report_error(self, error: Exception) -> None:
        """500 with the error message as the body."""
        log.warning("Upstream request for %s failed: %s", self.path, error)
        payload = str(error).encode("utf-8", errors="replace")
        self.send_response(500)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(payload)


class ProxyServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, rewriter: HttpsRewriter, config: ProxyConfig) -> None:
        self.rewriter = rewriter
        self.config = config
        super().__init__((config.address, config.port), ProxyHandler)


def serve(rewriter: HttpsRewriter, config: ProxyConfig) -> None:
    """Run the proxy until interrupted."""
    with ProxyServer(rewriter, config) as server:
        host, port = server.server_address[:2]
        log.info("Server running on %s:%s", host, port)
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            log.info("Shutting down")
