"""Text rewriter — upgrades the http URLs embedded in arbitrary content."""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import urlsplit

from httpsify.rewriter.urls import FIND_URI_RE, normalise_url, with_scheme
from httpsify.rules.matcher import RuleMatcher

log = logging.getLogger(__name__)


class TextRewriter:
    """Scan text for URLs and replace each one a ruleset upgrades.

    ``process`` never raises on malformed URLs; anything it cannot parse is
    left exactly as found.
    """

    def __init__(
        self, matcher: RuleMatcher, *, logger: Optional[logging.Logger] = None
    ) -> None:
        self.matcher = matcher
        self.log = logger or log

    def process(self, content: str) -> str:
        return FIND_URI_RE.sub(self._replace, content)

    def _replace(self, m: re.Match[str]) -> str:
        found = m.group(0)
        rewritten = self.rewrite_url(found)
        return found if rewritten is None else rewritten

    def rewrite_url(self, url: str) -> Optional[str]:
        """Upgraded form of a single *url*, or None to keep it as-is."""
        try:
            if urlsplit(url).scheme.lower() != "http":
                return None
            normalised = normalise_url(url)
            host = urlsplit(normalised).hostname
        except ValueError as exc:
            self.log.debug("Leaving unparseable URL %r alone: %s", url, exc)
            return None
        if not host:
            return None

        rewritten = self.matcher.rewrite_uri(normalised, host)
        if not rewritten:
            return None

        # a pure scheme upgrade keeps the normalised URL byte-for-byte
        if with_scheme(rewritten, "http") == normalised:
            return with_scheme(rewritten, "https")
        return rewritten
