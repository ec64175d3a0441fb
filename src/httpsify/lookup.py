"""Host lookup — which rulesets cover a host, and what they do to a URL."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List, Optional

from httpsify.engine import HttpsRewriter
from httpsify.rules.models import RuleSet


@dataclass
class LookupResult:
    """Complete result of one lookup."""

    host: str
    rulesets: List[RuleSet] = field(default_factory=list)
    url: Optional[str] = None
    rewritten: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def active_rulesets(self) -> List[RuleSet]:
        return [r for r in self.rulesets if r.active]

    @property
    def upgraded(self) -> bool:
        return self.rewritten is not None and self.rewritten != self.url


def lookup(rewriter: HttpsRewriter, host: str, url: Optional[str] = None) -> LookupResult:
    """Collect the potentially applicable rulesets for *host*.

    When *url* is given it is also run through the text rewriter, exactly as
    the proxy would treat a request for it.
    """
    start = time.perf_counter()
    host = host.strip().lower()
    result = LookupResult(
        host=host,
        rulesets=list(rewriter.matcher.potentially_applicable_rulesets(host)),
        url=url,
    )
    if url is not None:
        result.rewritten = rewriter.rewrite_url(url)
    result.duration_ms = round((time.perf_counter() - start) * 1000, 2)
    return result
