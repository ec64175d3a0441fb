"""Shared test fixtures — sample ruleset libraries, catalogues, rewriters."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from httpsify.engine import HttpsRewriter
from httpsify.rules.catalogue import RuleCatalogue


SAMPLE_LIBRARY = textwrap.dedent("""\
    <rulesetlibrary>
      <ruleset name="Example">
        <target host="example.com" />
        <target host="www.example.com" />
        <rule from="^http://(www\\.)?example\\.com/" to="https://$1example.com/" />
        <securecookie host="^(www\\.)?example\\.com$" name=".+" />
      </ruleset>
      <ruleset name="Reddit">
        <target host="reddit.com" />
        <target host="*.reddit.com" />
        <exclusion pattern="^http://(www\\.)?reddit\\.com/login" />
        <rule from="^http://(?:www\\.)?reddit\\.com/" to="https://www.reddit.com/" />
      </ruleset>
      <ruleset name="Google" match_rule="^http://[^/]*google\\.com/">
        <target host="google.com" />
        <target host="*.google.com" />
        <rule from="^http://mail\\.google\\.com/" to="https://mail.google.com/" />
        <rule from="^http://(www\\.)?google\\.com/" to="https://www.google.com/" />
        <securecookie host="^mail\\.google\\.com$" name="^SID$" />
      </ruleset>
      <ruleset name="Off By Default" default_off="breaks login">
        <target host="off.test" />
        <rule from="^http:" to="https:" />
      </ruleset>
      <ruleset name="Opera Only" platform="mixedcontent">
        <target host="opera.test" />
        <rule from="^http:" to="https:" />
      </ruleset>
      <ruleset name="Chromium Platform" platform="chromium">
        <target host="chromium.test" />
        <rule from="^http:" to="https:" />
      </ruleset>
      <ruleset name="Broken Pattern">
        <target host="broken.test" />
        <rule from="^http://(broken" to="https://broken.test/" />
      </ruleset>
    </rulesetlibrary>
""")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep HTTPSIFY_* variables from the outer environment out of tests."""
    for name in (
        "HTTPSIFY_ADDRESS",
        "HTTPSIFY_PORT",
        "HTTPSIFY_CATALOGUE",
        "HTTPSIFY_AGGRESSIVE",
        "HTTPSIFY_LOG_LEVEL",
        "HTTPSIFY_DISABLE_RULESETS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sample_library() -> str:
    return SAMPLE_LIBRARY


@pytest.fixture
def catalogue() -> RuleCatalogue:
    cat = RuleCatalogue()
    cat.load_xml(SAMPLE_LIBRARY)
    return cat


@pytest.fixture
def rewriter(catalogue: RuleCatalogue) -> HttpsRewriter:
    return HttpsRewriter(catalogue)


@pytest.fixture
def library_file(tmp_path: Path) -> Path:
    """The sample library written to ``rulesets.xml`` in a temp directory."""
    path = tmp_path / "rulesets.xml"
    path.write_text(SAMPLE_LIBRARY, encoding="utf-8")
    return path


def ruleset_xml(name: str, host: str, rule_from: str = "^http:", rule_to: str = "https:") -> str:
    """A one-target, one-rule ruleset element."""
    return (
        f'<ruleset name="{name}"><target host="{host}" />'
        f'<rule from="{rule_from}" to="{rule_to}" /></ruleset>'
    )
