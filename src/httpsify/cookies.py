"""Cookie security advisor — decides when forcing the Secure flag is safe.

Securing a cookie on a domain that is still reachable over plain HTTP
breaks that site, so the advisor only approves domains where some active
ruleset would upgrade an arbitrary URL. The check is a heuristic and errs
on the side of leaving cookies alone.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Collection, Optional

from httpsify.cache.lru import LRUCache
from httpsify.rules.matcher import RuleMatcher
from httpsify.rules.models import RuleSet

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cookie:
    """The parts of an observed cookie the advisor looks at."""

    domain: str
    name: str


class CookieAdvisor:
    """Answers "should this cookie be marked secure?" for a rule matcher.

    *blacklist* holds domains with known HTTP-only redirect loops. It is
    owned by the caller and consulted on every call, never cached.
    """

    def __init__(
        self,
        matcher: RuleMatcher,
        *,
        blacklist: Collection[str] = (),
        cache_size: int = 100,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.matcher = matcher
        self.blacklist = blacklist
        self.cache = LRUCache(cache_size)
        self.log = logger or log

    def should_secure_cookie(self, cookie: Cookie, known_https: bool) -> Optional[RuleSet]:
        """Return the ruleset that wants *cookie* secured, or None.

        *known_https* is True when the cookie is known to have been set over
        HTTPS, which skips the domain safety heuristic.
        """
        hostname = cookie.domain.lstrip(".")

        if not known_https and not self.safe_to_secure_cookie(hostname):
            return None

        for ruleset in self.matcher.potentially_applicable_rulesets(hostname):
            if not ruleset.active:
                continue
            for cookierule in ruleset.cookierules:
                if cookierule.matches(cookie.domain, cookie.name):
                    return ruleset
        return None

    def safe_to_secure_cookie(self, domain: str) -> bool:
        """True if some active ruleset would upgrade an arbitrary URL on *domain*."""
        if domain in self.blacklist:
            self.log.info("Cookies for %s blacklisted", domain)
            return False

        cached = self.cache.get(domain)
        if cached is not None:
            self.log.debug("Cookie host cache hit for %s", domain)
            return cached
        self.log.debug("Cookie host cache miss for %s", domain)

        # a made-up URL on the domain; if that gets upgraded, the domain is covered
        nonce_path = "/" + secrets.token_hex(8)
        test_uri = f"http://{domain}{nonce_path}{nonce_path}"
        self.log.info("Testing securecookie applicability with %s", test_uri)

        for ruleset in self.matcher.potentially_applicable_rulesets(domain):
            if not ruleset.active:
                continue
            if ruleset.apply(test_uri):
                self.log.info("Cookie domain %s could be secured", domain)
                self.cache.put(domain, True)
                return True

        self.log.info("Cookie domain %s could NOT be secured", domain)
        self.cache.put(domain, False)
        return False
