"""Ruleset data model — patterns stored as strings, compiled on construction.

Patterns and replacement templates come from the HTTPS Everywhere library,
which is written for JavaScript's ``RegExp`` / ``String.replace``. Patterns
compile as-is under ``re``; replacement templates are translated from the
``$1`` / ``$&`` / ``$$`` syntax to ``re`` templates.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

log = logging.getLogger(__name__)

_JS_REPLACEMENT_RE = re.compile(r"\$(\$|&|\d{1,2})")
_OPERA_RE = re.compile(r"(?:OPR|Opera)[/\s](\d+)(?:\.\d+)")


class Platform(str, Enum):
    CHROMIUM = "chromium"
    LEGACY_OPERA = "legacy-opera"

    @property
    def accepted(self) -> re.Pattern[str]:
        """Regex searched in a ruleset's ``platform`` attribute."""
        if self is Platform.LEGACY_OPERA:
            # Opera < 23 has no mixed content blocking
            return re.compile("chromium|mixedcontent")
        return re.compile("chromium")


def detect_platform(user_agent: str) -> Platform:
    """Classify *user_agent* for ruleset platform filtering."""
    m = _OPERA_RE.search(user_agent or "")
    if m and int(m.group(1)) < 23:
        return Platform.LEGACY_OPERA
    return Platform.CHROMIUM


def js_replacement_to_python(template: str, groups: int) -> str:
    """Translate a JavaScript replacement string into an ``re`` template.

    ``$n`` / ``$nn`` refer to capture groups only when the pattern defines
    them; otherwise they stay literal, as in JavaScript.
    """
    out: List[str] = []
    pos = 0
    for m in _JS_REPLACEMENT_RE.finditer(template):
        out.append(template[pos:m.start()].replace("\\", "\\\\"))
        token = m.group(1)
        if token == "$":
            out.append("$")
        elif token == "&":
            out.append(r"\g<0>")
        else:
            out.append(_group_reference(token, groups))
        pos = m.end()
    out.append(template[pos:].replace("\\", "\\\\"))
    return "".join(out)


def _group_reference(digits: str, groups: int) -> str:
    if len(digits) == 2 and 1 <= int(digits) <= groups:
        return rf"\g<{int(digits)}>"
    first, rest = int(digits[0]), digits[1:]
    if 1 <= first <= groups:
        return rf"\g<{first}>" + rest
    return "$" + digits


@dataclass
class Rule:
    """A single from → to rewrite.

    ``to`` keeps the JavaScript-style template as written; ``template`` is the
    translated form handed to ``re.sub``.
    """

    from_pattern: str
    to: str

    compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)
    template: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.from_pattern is None or self.to is None:
            raise ValueError("rule requires both 'from' and 'to'")
        self.compiled = re.compile(self.from_pattern)
        self.template = js_replacement_to_python(self.to, self.compiled.groups)

    def substitute(self, url: str) -> str:
        """Replace the first match in *url*; returns *url* when nothing matches."""
        return self.compiled.sub(self.template, url, count=1)


@dataclass
class Exclusion:
    """A URL pattern that vetoes its whole ruleset."""

    pattern: str
    compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.pattern is None:
            raise ValueError("exclusion requires a 'pattern'")
        self.compiled = re.compile(self.pattern)

    def matches(self, url: str) -> bool:
        return self.compiled.search(url) is not None


@dataclass
class CookieRule:
    """Marks cookies whose host and name both match as securable."""

    host: str
    name: str
    host_compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)
    name_compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.host is None or self.name is None:
            raise ValueError("securecookie requires both 'host' and 'name'")
        self.host_compiled = re.compile(self.host)
        self.name_compiled = re.compile(self.name)

    def matches(self, domain: str, name: str) -> bool:
        return (
            self.host_compiled.search(domain) is not None
            and self.name_compiled.search(name) is not None
        )


@dataclass(eq=False)
class RuleSet:
    """A named, independently togglable bundle of rules for one site family.

    Rulesets compare and hash by identity: the target index shares one
    instance between every host bucket that references it.
    """

    name: Optional[str]
    match_rule: Optional[str] = None
    default_state: bool = True
    note: str = ""
    rules: List[Rule] = field(default_factory=list)
    exclusions: List[Exclusion] = field(default_factory=list)
    cookierules: List[CookieRule] = field(default_factory=list)
    targets: List[str] = field(default_factory=list)
    active: bool = field(init=False)

    match_compiled: Optional[re.Pattern[str]] = field(
        default=None, init=False, repr=False
    )

    def __post_init__(self) -> None:
        self.active = self.default_state
        if self.match_rule:
            self.match_compiled = re.compile(self.match_rule)

    @property
    def display_name(self) -> str:
        return self.name if self.name is not None else "(user rule)"

    def apply(self, url: str) -> Optional[str]:
        """Return the rewritten *url*, or None if this ruleset leaves it alone."""
        for exclusion in self.exclusions:
            if exclusion.matches(url):
                log.debug("Excluded uri %s", url)
                return None

        if self.match_compiled is not None and self.match_compiled.search(url) is None:
            log.debug("match_rule of %s excluded %s", self.display_name, url)
            return None

        for rule in self.rules:
            rewritten = rule.substitute(url)
            if rewritten != url:
                return rewritten

        if self.match_compiled is not None:
            # the match_rule is not required to describe the rewritten space exactly
            log.debug(
                "Ruleset %s had an applicable match_rule but no matching rules",
                self.display_name,
            )
        return None
