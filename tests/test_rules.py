"""Tests for FileRules evaluation."""

from __future__ import annotations

from pathlib import Path

import pytest

from swishprog.exceptions import ConfigurationError
from swishprog.ingestion.rules import RuleSet, parse_file_rule


class TestParseFileRule:
    """Rule line parsing."""

    def test_default_polarity_is_exclude(self) -> None:
        """Lines without include/exclude exclude."""
        rule = parse_file_rule("dirname contains tmp")
        assert rule.applies_to == "dir"
        assert rule.action == "contains"
        assert rule.pattern == "tmp"
        assert rule.include is False

    def test_include_and_case(self) -> None:
        """Keywords are case-insensitive."""
        rule = parse_file_rule("INCLUDE FileName Is index.html")
        assert rule.include is True
        assert rule.applies_to == "file"
        assert rule.action == "is"

    def test_regex_delimiters_stripped(self) -> None:
        """/pattern/ loses its delimiters."""
        rule = parse_file_rule(r"pathname regex /\.bak$/")
        assert rule.pattern == r"\.bak$"

    def test_word_characters_are_not_delimiters(self) -> None:
        """Only punctuation delimiters are stripped from a regex."""
        assert parse_file_rule("filename regex _tmp_").pattern == "_tmp_"
        assert parse_file_rule("filename regex -x-").pattern == "-x-"
        assert parse_file_rule("filename regex !tmp!").pattern == "tmp"

    def test_bad_syntax(self) -> None:
        """Unparseable rules raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Bad syntax"):
            parse_file_rule("filename sounds-like foo")

    def test_bad_regex(self) -> None:
        """Invalid patterns raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Bad regex"):
            parse_file_rule("filename regex /(unclosed/")


class TestRuleSet:
    """First-match-wins evaluation."""

    def test_no_rules_excludes_nothing(self) -> None:
        """An empty rule set accepts everything."""
        rules = RuleSet()
        assert not rules
        assert rules.is_excluded(Path("/a/b.html"), is_dir=False) is False

    def test_filename_rules_apply_to_files_only(self) -> None:
        """filename rules ignore directories."""
        rules = RuleSet(["filename is skip"])
        assert rules.is_excluded(Path("/x/skip"), is_dir=False) is True
        assert rules.is_excluded(Path("/x/skip"), is_dir=True) is False

    def test_dirname_rules_apply_to_directories_only(self) -> None:
        """dirname rules ignore files."""
        rules = RuleSet(["dirname contains tmp"])
        assert rules.is_excluded(Path("/x/mytmpdir"), is_dir=True) is True
        assert rules.is_excluded(Path("/x/mytmp.html"), is_dir=False) is False

    def test_pathname_rules_match_full_path(self) -> None:
        """pathname rules see the whole path."""
        rules = RuleSet(["pathname contains /private/"])
        assert rules.is_excluded(Path("/site/private/a.html"), is_dir=False) is True
        assert rules.is_excluded(Path("/site/public/a.html"), is_dir=False) is False

    def test_is_means_equality(self) -> None:
        """is compares the whole name."""
        rules = RuleSet(["filename is a.html"])
        assert rules.is_excluded(Path("a.html"), is_dir=False) is True
        assert rules.is_excluded(Path("aa.html"), is_dir=False) is False

    def test_first_match_wins(self) -> None:
        """An earlier include beats a later exclude."""
        rules = RuleSet(["include filename is keep.bak", r"filename regex /\.bak$/"])
        assert rules.is_excluded(Path("keep.bak"), is_dir=False) is False
        assert rules.is_excluded(Path("drop.bak"), is_dir=False) is True

    def test_first_match_wins_exclude_first(self) -> None:
        """An earlier exclude beats a later include."""
        rules = RuleSet([r"filename regex /\.bak$/", "include filename is keep.bak"])
        assert rules.is_excluded(Path("keep.bak"), is_dir=False) is True

    def test_title_rules(self) -> None:
        """title rules only apply to titles."""
        rules = RuleSet(["title contains DRAFT"])
        assert rules.has_title_rules
        assert rules.title_excluded("DRAFT: plans") is True
        assert rules.title_excluded("Final plans") is False
        assert rules.title_excluded(None) is False
        assert rules.is_excluded(Path("DRAFT.html"), is_dir=False) is False
