"""Starter httpsify.toml template."""

DEFAULT_TOML = """\
# httpsify configuration
version = "1.0"

[proxy]
address = "127.0.0.1"
port = 5641
rewrite_pages = true      # rewrite URLs found in response bodies
aggressive = false        # also rewrite bodies that are not text/*
follow_redirects = true
max_redirects = 5
verify_ssl = true
# upstream_proxy = "http://10.0.0.1:3128"
# secure_cookies = false  # add Secure to Set-Cookie where a ruleset asks for it

[rules]
catalogue = "rulesets.xml"          # HTTPS Everywhere ruleset library
user_rules_dir = ".httpsify-rules"  # *.yaml files with host / url_matcher / redirect_to
# user_agent = "Mozilla/5.0 ... Chrome/120.0"

[rules.active]
# "Example Ruleset" = "false"

[cache]
ruleset_cache_size = 1000
cookie_cache_size = 100

[cookies]
# blacklist = ["loops.example.com"]   # domains with HTTP-only redirect loops

[logging]
level = "info"            # debug | info | warning | error
"""
