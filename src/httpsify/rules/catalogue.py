"""Rule catalogue — loads the ruleset library and owns the target index."""

from __future__ import annotations

import logging
import re
import threading
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

import yaml

from httpsify.cache.lru import LRUCache
from httpsify.rules.models import (
    CookieRule,
    Exclusion,
    Rule,
    RuleSet,
    detect_platform,
)

log = logging.getLogger(__name__)


class CatalogueError(Exception):
    """Raised when the ruleset library is missing or unreadable as a whole."""


@dataclass(frozen=True)
class UserRule:
    """A single rewrite added at runtime for one (possibly wildcarded) host."""

    host: str
    url_matcher: str
    redirect_to: str


def normalise_active_states(states: Optional[Mapping[str, object]]) -> Dict[str, str]:
    """Coerce override values to the ``"true"`` / ``"false"`` strings used for lookup."""
    out: Dict[str, str] = {}
    for name, value in (states or {}).items():
        if isinstance(value, bool):
            out[name] = "true" if value else "false"
        else:
            out[name] = str(value).strip().lower()
    return out


class RuleCatalogue:
    """All loaded rulesets plus the host → rulesets target index.

    ``targets`` maps a literal or wildcarded host (``*.example.com``) to the
    rulesets declared for it, in load order. The lists hold shared references
    into ``rulesets``; nothing is copied per bucket.

    The catalogue also owns the ruleset lookup cache, because any change to
    ``targets`` must invalidate it. ``lock`` serialises index mutation against
    lookups.
    """

    def __init__(
        self,
        *,
        user_agent: str = "",
        active_states: Optional[Mapping[str, object]] = None,
        ruleset_cache_size: int = 1000,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.log = logger or log
        self.platform = detect_platform(user_agent)
        self.active_states = normalise_active_states(active_states)
        self.targets: Dict[str, List[RuleSet]] = {}
        self.ruleset_cache = LRUCache(ruleset_cache_size)
        self.lock = threading.RLock()
        self._rulesets: List[RuleSet] = []
        self.log.debug("Ruleset platform filter: %s", self.platform.value)

    # ---- loading ----

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs) -> "RuleCatalogue":
        """Build a catalogue from a ruleset library file."""
        catalogue = cls(**kwargs)
        catalogue.load_file(path)
        return catalogue

    def load_file(self, path: Union[str, Path]) -> int:
        p = Path(path)
        try:
            data = p.read_bytes()
        except OSError as exc:
            raise CatalogueError(f"Cannot read ruleset library {p}: {exc}") from exc
        return self.load_xml(data)

    def load_xml(self, source: Union[str, bytes]) -> int:
        """Parse every ``<ruleset>`` in *source*. Returns the number loaded.

        A malformed ruleset is logged and skipped; only an unparseable
        document is fatal.
        """
        try:
            root = ET.fromstring(source)
        except ET.ParseError as exc:
            raise CatalogueError(f"Ruleset library is not valid XML: {exc}") from exc

        count = 0
        for element in root.iter("ruleset"):
            try:
                self.add_ruleset(self.parse_ruleset(element))
            except (re.error, ValueError, TypeError) as exc:
                self.log.warning(
                    "Error processing ruleset %r: %s", element.get("name"), exc
                )
                continue
            count += 1
        self.log.info("Loaded %d rulesets (%d target hosts)", count, len(self.targets))
        return count

    def parse_ruleset(self, element: ET.Element) -> RuleSet:
        """Build a RuleSet from one ``<ruleset>`` element."""
        default_state = True
        note = ""
        if "default_off" in element.attrib:
            default_state = False
            note += element.attrib["default_off"] + "\n"

        # A declared platform we do not match means off-by-default
        platform = element.get("platform")
        if platform:
            if self.platform.accepted.search(platform) is None:
                default_state = False
            note += f"Platform(s): {platform}\n"

        ruleset = RuleSet(
            name=element.get("name"),
            match_rule=element.get("match_rule"),
            default_state=default_state,
            note=note.strip(),
        )
        if ruleset.name in self.active_states:
            ruleset.active = self.active_states[ruleset.name] == "true"

        for child in element.iter("rule"):
            ruleset.rules.append(Rule(child.get("from"), child.get("to")))
        for child in element.iter("exclusion"):
            ruleset.exclusions.append(Exclusion(child.get("pattern")))
        for child in element.iter("securecookie"):
            ruleset.cookierules.append(CookieRule(child.get("host"), child.get("name")))
        for child in element.iter("target"):
            host = child.get("host")
            if not host:
                raise ValueError("target without a host")
            ruleset.targets.append(host)
        return ruleset

    def add_ruleset(self, ruleset: RuleSet) -> None:
        """Register *ruleset* under each of its target hosts."""
        with self.lock:
            self._rulesets.append(ruleset)
            for host in ruleset.targets:
                bucket = self.targets.setdefault(host, [])
                if ruleset not in bucket:
                    bucket.append(ruleset)
                self._invalidate(host)

    def add_user_rule(self, host: str, url_matcher: str, redirect_to: str) -> RuleSet:
        """Append an always-active single-rule ruleset under *host*.

        Raises ``re.error`` if *url_matcher* does not compile.
        """
        self.log.info(
            "Adding user rule for %s: %s -> %s", host, url_matcher, redirect_to
        )
        ruleset = RuleSet(name=None, default_state=True, note="user rule")
        ruleset.rules.append(Rule(url_matcher, redirect_to))
        ruleset.targets.append(host)
        self.add_ruleset(ruleset)
        return ruleset

    def _invalidate(self, host: str) -> None:
        if "*" in host:
            # wildcard buckets feed any number of cached hosts
            self.ruleset_cache.remove_all()
        else:
            self.ruleset_cache.remove(host)

    # ---- queries ----

    @property
    def rulesets(self) -> List[RuleSet]:
        with self.lock:
            return list(self._rulesets)

    def targets_for(self, host: str) -> List[RuleSet]:
        """Copy of the bucket registered for exactly *host*."""
        with self.lock:
            return list(self.targets.get(host, ()))

    def get(self, name: str) -> Optional[RuleSet]:
        with self.lock:
            for ruleset in self._rulesets:
                if ruleset.name == name:
                    return ruleset
        return None

    def __len__(self) -> int:
        with self.lock:
            return len(self._rulesets)


# ---- user-rule files ----


def load_user_rules(directory: Path) -> List[UserRule]:
    """Read user rules from the YAML files in *directory*."""
    if not directory.is_dir():
        return []
    rules: List[UserRule] = []
    for path in sorted(directory.iterdir()):
        if path.suffix in (".yaml", ".yml"):
            rules.extend(_load_yaml_rules(path))
    return rules


def _load_yaml_rules(path: Path) -> Iterable[UserRule]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise CatalogueError(f"Failed to parse {path}: {exc}") from exc
    if data is None:
        return []
    if not isinstance(data, list):
        data = [data]
    rules: List[UserRule] = []
    for entry in data:
        try:
            fields = [entry[key] for key in ("host", "url_matcher", "redirect_to")]
        except (KeyError, TypeError) as exc:
            raise CatalogueError(f"Malformed user rule in {path}: missing {exc}") from exc
        if not all(isinstance(value, str) for value in fields):
            raise CatalogueError(
                f"Malformed user rule in {path}: host, url_matcher and redirect_to must be strings"
            )
        rules.append(UserRule(*fields))
    return rules
