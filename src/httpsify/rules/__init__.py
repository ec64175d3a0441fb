"""Rule engine — models, catalogue, matcher."""

from httpsify.rules.catalogue import CatalogueError, RuleCatalogue, UserRule, load_user_rules
from httpsify.rules.matcher import RuleMatcher
from httpsify.rules.models import CookieRule, Exclusion, Platform, Rule, RuleSet, detect_platform

__all__ = [
    "CatalogueError",
    "CookieRule",
    "Exclusion",
    "Platform",
    "Rule",
    "RuleCatalogue",
    "RuleMatcher",
    "RuleSet",
    "UserRule",
    "detect_platform",
    "load_user_rules",
]
