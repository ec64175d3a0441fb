"""JSON reporter for host lookups."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from httpsify.lookup import LookupResult


def to_dict(result: LookupResult) -> Dict[str, Any]:
    """Convert a LookupResult to a JSON-serialisable dict."""
    rulesets: List[Dict[str, Any]] = []
    for r in result.rulesets:
        rulesets.append({
            "name": r.name,
            "active": r.active,
            "default_state": r.default_state,
            "targets": r.targets,
            "rules": len(r.rules),
            "exclusions": len(r.exclusions),
            "securecookies": len(r.cookierules),
            **({"note": r.note} if r.note else {}),
        })

    return {
        "version": "1.0",
        "host": result.host,
        "rulesets": rulesets,
        **({"url": result.url, "rewritten": result.rewritten} if result.url is not None else {}),
        "duration_ms": result.duration_ms,
    }


def render(result: LookupResult) -> str:
    """Return formatted JSON string."""
    return json.dumps(to_dict(result), indent=2)
