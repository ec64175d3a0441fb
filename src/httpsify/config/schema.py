"""Configuration schema — dataclasses for every config section."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal

LogLevel = Literal["debug", "info", "warning", "error"]

LOG_LEVELS: tuple[str, ...] = ("debug", "info", "warning", "error")

# Anything that is not Opera < 23 selects the "chromium" platform filter
DEFAULT_USER_AGENT = "httpsify (like Chrome)"


@dataclass
class ProxyConfig:
    address: str = "127.0.0.1"
    port: int = 5641  # reversed(str(sum(map(ord, "HTTPSEverywhere"))))
    rewrite_pages: bool = True
    aggressive: bool = False  # also rewrite non text/* bodies
    follow_redirects: bool = True
    max_redirects: int = 5
    verify_ssl: bool = True
    upstream_proxy: str = ""
    trust_env: bool = False
    timeout: float = 30.0
    secure_cookies: bool = False


@dataclass
class RulesConfig:
    catalogue: str = "rulesets.xml"
    user_agent: str = DEFAULT_USER_AGENT
    user_rules_dir: str = ".httpsify-rules"
    active: Dict[str, str] = field(default_factory=dict)  # ruleset name -> "true" | "false"


@dataclass
class CacheConfig:
    ruleset_cache_size: int = 1000
    cookie_cache_size: int = 100


@dataclass
class CookiesConfig:
    blacklist: List[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    level: LogLevel = "info"


@dataclass
class HttpsifyConfig:
    version: str = "1.0"
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    cookies: CookiesConfig = field(default_factory=CookiesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
