"""Engine facade — the entry points the proxy (or any other caller) uses.

Every method is synchronous and safe to call from many request threads at
once: the shared caches and the target index do their own locking.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Collection, Optional

from httpsify.config.schema import HttpsifyConfig
from httpsify.cookies import Cookie, CookieAdvisor
from httpsify.rewriter.text import TextRewriter
from httpsify.rules.catalogue import RuleCatalogue, UserRule, load_user_rules
from httpsify.rules.matcher import RuleMatcher
from httpsify.rules.models import RuleSet

log = logging.getLogger(__name__)


class HttpsRewriter:
    """Rewrites URLs and page content with a loaded rule catalogue."""

    def __init__(
        self,
        catalogue: RuleCatalogue,
        *,
        blacklist: Collection[str] = (),
        cookie_cache_size: int = 100,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.log = logger or log
        self.catalogue = catalogue
        self.matcher = RuleMatcher(catalogue, logger=logger)
        self.cookies = CookieAdvisor(
            self.matcher,
            blacklist=blacklist,
            cache_size=cookie_cache_size,
            logger=logger,
        )
        self.text = TextRewriter(self.matcher, logger=logger)

    def rewrite_url(self, url: str) -> str:
        """The URL the proxy should fetch instead of *url* (often *url* itself)."""
        return self.text.process(url)

    def rewrite_page_content(self, body: str) -> str:
        return self.text.process(body)

    def rewrite_uri(self, url: str, host: str) -> Optional[str]:
        return self.matcher.rewrite_uri(url, host)

    def should_secure_cookie(self, cookie: Cookie, known_https: bool) -> Optional[RuleSet]:
        return self.cookies.should_secure_cookie(cookie, known_https)

    def add_user_rule(self, rule: UserRule) -> bool:
        """Register *rule*; False if its pattern does not compile."""
        try:
            self.catalogue.add_user_rule(rule.host, rule.url_matcher, rule.redirect_to)
        except (re.error, ValueError, TypeError) as exc:
            self.log.warning("Rejected user rule for %s: %s", rule.host, exc)
            return False
        self.log.info("Done adding user rule for %s", rule.host)
        return True


def build_rewriter(
    config: HttpsifyConfig,
    root: Path,
    *,
    logger: Optional[logging.Logger] = None,
) -> HttpsRewriter:
    """Load the catalogue named in *config* and return a ready rewriter.

    Relative paths resolve against *root*. Raises ``CatalogueError`` if the
    ruleset library cannot be read.
    """
    rules_cfg = config.rules
    catalogue_path = Path(rules_cfg.catalogue)
    if not catalogue_path.is_absolute():
        catalogue_path = root / catalogue_path

    (logger or log).info("Loading rulesets from %s", catalogue_path)
    catalogue = RuleCatalogue.from_file(
        catalogue_path,
        user_agent=rules_cfg.user_agent,
        active_states=rules_cfg.active,
        ruleset_cache_size=config.cache.ruleset_cache_size,
        logger=logger,
    )
    rewriter = HttpsRewriter(
        catalogue,
        blacklist=frozenset(config.cookies.blacklist),
        cookie_cache_size=config.cache.cookie_cache_size,
        logger=logger,
    )

    user_dir = Path(rules_cfg.user_rules_dir)
    if not user_dir.is_absolute():
        user_dir = root / user_dir
    for user_rule in load_user_rules(user_dir):
        rewriter.add_user_rule(user_rule)

    return rewriter
