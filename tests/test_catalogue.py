"""Tests for ruleset models and catalogue loading."""

import logging
from pathlib import Path

import pytest
import yaml

from httpsify.rules.catalogue import (
    CatalogueError,
    RuleCatalogue,
    UserRule,
    load_user_rules,
    normalise_active_states,
)
from httpsify.rules.models import (
    Platform,
    Rule,
    RuleSet,
    detect_platform,
    js_replacement_to_python,
)

from conftest import SAMPLE_LIBRARY, ruleset_xml


class TestReplacementTemplates:
    def test_numbered_groups(self):
        assert js_replacement_to_python("https://$1example.com/$2", 2) == r"https://\g<1>example.com/\g<2>"

    def test_whole_match_and_dollar(self):
        assert js_replacement_to_python("$&-$$", 0) == r"\g<0>-$"

    def test_missing_group_stays_literal(self):
        assert js_replacement_to_python("a$3b", 1) == "a$3b"

    def test_two_digit_falls_back_to_one(self):
        assert js_replacement_to_python("$12", 1) == r"\g<1>2"

    def test_backslashes_are_literal(self):
        rule = Rule(r"^http://a\.test/", "https://a.test/\\n/")
        assert rule.substitute("http://a.test/x") == "https://a.test/\\n/x"

    def test_rule_substitutes_first_match_only(self):
        rule = Rule("http:", "https:")
        assert rule.substitute("http://a.test/?u=http://b") == "https://a.test/?u=http://b"

    def test_unmatched_optional_group_is_empty(self):
        rule = Rule(r"^http://(www\.)?example\.com/", "https://$1example.com/")
        assert rule.substitute("http://example.com/a") == "https://example.com/a"
        assert rule.substitute("http://www.example.com/a") == "https://www.example.com/a"


class TestPlatformDetection:
    @pytest.mark.parametrize("agent", [
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36",
        "Mozilla/5.0 Chrome/38.0 Safari/537.36 OPR/25.0.1614.50",
        "",
    ])
    def test_chromium(self, agent):
        assert detect_platform(agent) is Platform.CHROMIUM

    @pytest.mark.parametrize("agent", [
        "Opera/9.80 (Windows NT 6.1) Presto/2.12.388 Version/12.16",
        "Mozilla/5.0 Chrome/31.0 Safari/537.36 OPR/18.0.1284.68",
    ])
    def test_legacy_opera(self, agent):
        assert detect_platform(agent) is Platform.LEGACY_OPERA

    def test_accepted_platforms(self):
        assert Platform.CHROMIUM.accepted.search("mixedcontent") is None
        assert Platform.LEGACY_OPERA.accepted.search("mixedcontent")


class TestLoading:
    def test_loads_and_skips_broken(self, catalogue):
        assert len(catalogue) == 6
        assert catalogue.get("Broken Pattern") is None
        assert catalogue.get("Example") is not None

    def test_broken_ruleset_is_logged(self, caplog):
        cat = RuleCatalogue()
        with caplog.at_level(logging.WARNING):
            cat.load_xml(SAMPLE_LIBRARY)
        assert any("Broken Pattern" in r.getMessage() for r in caplog.records)

    def test_missing_attribute_skips_ruleset(self):
        cat = RuleCatalogue()
        count = cat.load_xml(
            "<rulesetlibrary>"
            '<ruleset name="NoTo"><target host="a.test" /><rule from="^http:" /></ruleset>'
            + ruleset_xml("Fine", "b.test")
            + "</rulesetlibrary>"
        )
        assert count == 1
        assert cat.get("NoTo") is None
        assert "a.test" not in cat.targets

    def test_single_ruleset_document(self):
        cat = RuleCatalogue()
        assert cat.load_xml(ruleset_xml("Solo", "solo.test")) == 1

    def test_invalid_xml_is_fatal(self):
        with pytest.raises(CatalogueError):
            RuleCatalogue().load_xml("<rulesetlibrary><ruleset")

    def test_missing_file_is_fatal(self, tmp_path):
        with pytest.raises(CatalogueError):
            RuleCatalogue.from_file(tmp_path / "absent.xml")

    def test_from_file(self, library_file):
        cat = RuleCatalogue.from_file(library_file)
        assert len(cat) == 6

    def test_children_in_document_order(self, catalogue):
        google = catalogue.get("Google")
        assert [r.to for r in google.rules] == [
            "https://mail.google.com/",
            "https://www.google.com/",
        ]
        assert google.targets == ["google.com", "*.google.com"]
        assert len(google.cookierules) == 1
        assert google.match_compiled is not None

    def test_ruleset_shared_across_buckets(self, catalogue):
        a = catalogue.targets["example.com"][0]
        b = catalogue.targets["www.example.com"][0]
        assert a is b


class TestDefaultState:
    def test_default_off(self, catalogue):
        rs = catalogue.get("Off By Default")
        assert rs.default_state is False
        assert rs.active is False
        assert rs.note == "breaks login"

    def test_platform_mismatch_is_off(self, catalogue):
        rs = catalogue.get("Opera Only")
        assert rs.active is False
        assert rs.note == "Platform(s): mixedcontent"

    def test_platform_match_stays_on(self, catalogue):
        assert catalogue.get("Chromium Platform").active is True

    def test_legacy_opera_accepts_mixedcontent(self):
        cat = RuleCatalogue(user_agent="Opera/9.80 (Windows NT 6.1) Version/12.16")
        cat.load_xml(SAMPLE_LIBRARY)
        assert cat.get("Opera Only").active is True

    def test_override_takes_precedence(self):
        cat = RuleCatalogue(active_states={"Off By Default": "true", "Example": "false"})
        cat.load_xml(SAMPLE_LIBRARY)
        assert cat.get("Off By Default").active is True
        assert cat.get("Off By Default").default_state is False
        assert cat.get("Example").active is False

    def test_override_booleans_normalised(self):
        assert normalise_active_states({"A": True, "B": False, "C": "TRUE"}) == {
            "A": "true",
            "B": "false",
            "C": "true",
        }


class TestUserRules:
    def test_add_user_rule_appends_last(self, catalogue):
        rs = catalogue.add_user_rule("example.com", "^http://example\\.com/", "https://example.com/")
        bucket = catalogue.targets["example.com"]
        assert bucket[-1] is rs
        assert rs.active is True
        assert rs.name is None
        assert rs.note == "user rule"

    def test_add_user_rule_new_host(self, catalogue):
        catalogue.add_user_rule("new.test", "^http:", "https:")
        assert len(catalogue.targets_for("new.test")) == 1

    def test_add_user_rule_invalidates_host_cache(self, catalogue):
        catalogue.ruleset_cache.put("example.com", [])
        catalogue.ruleset_cache.put("other.test", [])
        catalogue.add_user_rule("example.com", "^http:", "https:")
        assert "example.com" not in catalogue.ruleset_cache
        assert "other.test" in catalogue.ruleset_cache

    def test_wildcard_user_rule_clears_cache(self, catalogue):
        catalogue.ruleset_cache.put("a.example.com", [])
        catalogue.ruleset_cache.put("other.test", [])
        catalogue.add_user_rule("*.example.com", "^http:", "https:")
        assert len(catalogue.ruleset_cache) == 0

    def test_load_user_rules_from_yaml(self, tmp_path: Path):
        rules_dir = tmp_path / ".httpsify-rules"
        rules_dir.mkdir()
        (rules_dir / "mine.yaml").write_text(yaml.dump([{
            "host": "intranet.test",
            "url_matcher": "^http://intranet\\.test/",
            "redirect_to": "https://intranet.test/",
        }]))
        (rules_dir / "single.yml").write_text(yaml.dump({
            "host": "wiki.test",
            "url_matcher": "^http:",
            "redirect_to": "https:",
        }))
        (rules_dir / "notes.txt").write_text("ignored")

        rules = load_user_rules(rules_dir)
        assert [r.host for r in rules] == ["intranet.test", "wiki.test"]

    def test_load_user_rules_missing_dir(self, tmp_path: Path):
        assert load_user_rules(tmp_path / "nope") == []

    def test_malformed_user_rule_raises(self, tmp_path: Path):
        (tmp_path / "bad.yaml").write_text(yaml.dump({"host": "x.test"}))
        with pytest.raises(CatalogueError):
            load_user_rules(tmp_path)

    def test_non_string_user_rule_raises(self, tmp_path: Path):
        (tmp_path / "r.yaml").write_text(
            "host: x.test\n"
            "url_matcher: 123\n"
            "redirect_to: 'https:'\n"
        )
        with pytest.raises(CatalogueError):
            load_user_rules(tmp_path)

    def test_non_string_pattern_rejected_by_engine(self, rewriter):
        assert rewriter.add_user_rule(UserRule("x.test", 123, "https:")) is False


class TestRuleSetIdentity:
    def test_identity_equality(self):
        a = RuleSet(name="Same")
        b = RuleSet(name="Same")
        assert a != b
        assert a == a
        assert len({a, b}) == 2
