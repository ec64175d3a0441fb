"""Rule matcher — wildcard host lookup and first-hit URL rewriting."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from httpsify.rules.catalogue import RuleCatalogue
from httpsify.rules.models import RuleSet

log = logging.getLogger(__name__)


def _set_insert(into: List[RuleSet], items: Optional[Iterable[RuleSet]]) -> None:
    """Append each of *items* not already in *into* (identity), keeping order."""
    if not items:
        return
    for item in items:
        if item not in into:
            into.append(item)


def candidate_hosts(host: str) -> List[str]:
    """Target-index keys consulted for *host*, in scan order.

    For ``x.y.z.google.com`` that is the host itself, each label replaced
    by ``*`` in turn, then ``*.z.google.com`` and ``*.google.com``.
    """
    keys = [host]
    labels = host.split(".")
    for i in range(len(labels)):
        keys.append(".".join(labels[:i] + ["*"] + labels[i + 1:]))
    for i in range(2, len(labels) - 1):
        keys.append("*." + ".".join(labels[i:]))
    return keys


class RuleMatcher:
    """Finds and applies the rulesets that cover a host."""

    def __init__(
        self, catalogue: RuleCatalogue, *, logger: Optional[logging.Logger] = None
    ) -> None:
        self.catalogue = catalogue
        self.log = logger or log

    def potentially_applicable_rulesets(self, host: str) -> List[RuleSet]:
        """Return the de-duplicated rulesets registered for *host* or a wildcard of it.

        Results are cached per host. The returned list is shared with the
        cache and must not be mutated by callers.
        """
        cache = self.catalogue.ruleset_cache
        cached = cache.get(host)
        if cached is not None:
            self.log.debug("Ruleset cache hit for %s items: %d", host, len(cached))
            return cached

        with self.catalogue.lock:
            # re-check: another thread may have filled it while we waited
            cached = cache.get(host)
            if cached is not None:
                return cached
            self.log.debug("Ruleset cache miss for %s", host)

            targets = self.catalogue.targets
            keys = candidate_hosts(host)
            # copy the exact bucket so the index is never aliased
            results: List[RuleSet] = list(targets.get(keys[0], ()))
            for key in keys[1:]:
                _set_insert(results, targets.get(key))

            if self.log.isEnabledFor(logging.DEBUG):
                names = ", ".join(r.display_name for r in results) or "None"
                self.log.debug("Applicable rules for %s: %s", host, names)

            cache.put(host, results)
            return results

    def rewrite_uri(self, url: str, host: str) -> Optional[str]:
        """Rewrite *url* with the first active ruleset for *host* that changes it."""
        for ruleset in self.potentially_applicable_rulesets(host):
            if not ruleset.active:
                continue
            rewritten = ruleset.apply(url)
            if rewritten:
                return rewritten
        return None
