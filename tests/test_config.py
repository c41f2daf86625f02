"""Tests for convcheck.config: YAML configuration loading."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from convcheck.config import (
    DEFAULT_IGNORE,
    ConfigError,
    find_config,
    load_config,
    parse_config,
    resolve_config,
)
from convcheck.engine.model import (
    BranchNameRequest,
    Category,
    CommitMessageRequest,
    IdentifierKind,
    IdentifierRequest,
    PathRequest,
    Severity,
)
from convcheck.engine.ruleset import RuleSetError
from convcheck.engine.validator import validate

if TYPE_CHECKING:
    from pathlib import Path


def _write(tmp_path: Path, content: str, name: str = ".convcheck.yml") -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# parse_config
# ---------------------------------------------------------------------------


class TestParseConfig:
    def test_empty_document_gives_defaults(self) -> None:
        ruleset, ignore = parse_config(None)
        assert len(ruleset) == 12
        assert ignore == DEFAULT_IGNORE

    def test_not_a_mapping(self) -> None:
        with pytest.raises(ValueError, match="YAML mapping"):
            parse_config(["a", "b"])

    def test_unsupported_version(self) -> None:
        with pytest.raises(ValueError, match="unsupported version 2"):
            parse_config({"version": 2})

    def test_invalid_extends(self) -> None:
        with pytest.raises(ValueError, match="invalid extends"):
            parse_config({"extends": "strict"})

    def test_commit_types(self) -> None:
        ruleset, _ = parse_config({"commit": {"types": ["feat", "perf"]}})
        assert validate(ruleset, CommitMessageRequest("perf: faster")).ok
        assert not validate(ruleset, CommitMessageRequest("fix: thing")).ok

    def test_empty_commit_types(self) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            parse_config({"commit": {"types": []}})

    def test_require_space_off(self) -> None:
        ruleset, _ = parse_config({"commit": {"require_space": False}})
        assert validate(ruleset, CommitMessageRequest("feat:description")).ok

    def test_boolean_checked(self) -> None:
        with pytest.raises(ValueError, match="commit.allow_breaking must be true or false"):
            parse_config({"commit": {"allow_breaking": "no"}})

    def test_branch_exempt(self) -> None:
        ruleset, _ = parse_config({"branch": {"exempt": ["trunk"]}})
        assert validate(ruleset, BranchNameRequest("trunk")).ok
        assert not validate(ruleset, BranchNameRequest("main")).ok

    def test_suffix_list_replaces_table(self) -> None:
        ruleset, _ = parse_config({"suffixes": ["BTN"]})
        assert validate(ruleset, IdentifierRequest("StartBTN", IdentifierKind.NODE_NAME)).ok
        assert not validate(ruleset, IdentifierRequest("NameLBL", IdentifierKind.NODE_NAME)).ok

    def test_extend_suffixes(self) -> None:
        ruleset, _ = parse_config({"suffixes": {"HUD": "CanvasLayer"}, "extend_suffixes": True})
        assert validate(ruleset, IdentifierRequest("GameHUD", IdentifierKind.NODE_NAME)).ok
        assert validate(ruleset, IdentifierRequest("NameLBL", IdentifierKind.NODE_NAME)).ok

    def test_invalid_suffix_is_rule_set_error(self) -> None:
        with pytest.raises(RuleSetError, match="invalid suffix 'button'"):
            parse_config({"suffixes": ["button"]})

    def test_placement_schema_and_ignore(self) -> None:
        ruleset, ignore = parse_config(
            {"placement": {"schema": {"src": ["script"]}, "ignore": ["*.txt"]}}
        )
        assert ignore == ("*.txt",)
        assert validate(ruleset, PathRequest.from_string("src/main.gd")).ok
        assert not validate(ruleset, PathRequest.from_string("entities/main.gd")).ok

    def test_placement_bad_kind(self) -> None:
        with pytest.raises(RuleSetError, match="invalid kind"):
            parse_config({"placement": {"schema": {"src": ["model"]}}})


class TestRuleEntries:
    def test_override_severity_and_enabled(self) -> None:
        ruleset, _ = parse_config(
            {
                "rules": [
                    {"id": "Commit.UnknownType", "severity": "warning"},
                    {"id": "Commit.EmptyScope", "enabled": False},
                ]
            }
        )
        unknown_type = ruleset.get("Commit.UnknownType")
        empty_scope = ruleset.get("Commit.EmptyScope")
        assert unknown_type is not None
        assert empty_scope is not None
        assert unknown_type.severity is Severity.WARNING
        assert empty_scope.enabled is False

    def test_override_message(self) -> None:
        ruleset, _ = parse_config(
            {"rules": [{"id": "Commit.UnknownType", "message": "Bad type {value}"}]}
        )
        result = validate(ruleset, CommitMessageRequest("Fix: x"))
        assert result.diagnostics[0].message == "Bad type Fix"

    def test_override_params(self) -> None:
        ruleset, _ = parse_config(
            {"rules": [{"id": "Commit.UnknownType", "params": {"types": ["wip"]}}]}
        )
        assert validate(ruleset, CommitMessageRequest("wip: x")).ok

    def test_scalar_sequence_param(self) -> None:
        ruleset, _ = parse_config(
            {"rules": [{"id": "Commit.UnknownType", "params": {"types": "wip"}}]}
        )
        rule = ruleset.get("Commit.UnknownType")
        assert rule is not None
        assert rule.params["types"] == ("wip",)
        assert validate(ruleset, CommitMessageRequest("wip: x")).ok
        assert not validate(ruleset, CommitMessageRequest("w: x")).ok

    def test_scalar_exempt_param(self) -> None:
        ruleset, _ = parse_config(
            {"rules": [{"id": "BranchName.MissingIssueNumber", "params": {"exempt": "release"}}]}
        )
        result = validate(ruleset, BranchNameRequest("release"))
        assert "BranchName.MissingIssueNumber" not in result.rule_ids()

    def test_sequence_param_must_hold_strings(self) -> None:
        with pytest.raises(ValueError, match=r"params.types must be a list of strings"):
            parse_config(
                {"rules": [{"id": "Commit.UnknownType", "params": {"types": {"a": 1}}}]}
            )

    def test_template_with_format_spec_rejected(self) -> None:
        with pytest.raises(ValueError, match="malformed message template"):
            parse_config(
                {"rules": [{"id": "Commit.UnknownType", "message": "Bad type {value:>10}"}]}
            )

    def test_matcher_cannot_change(self) -> None:
        with pytest.raises(ValueError, match="cannot change the matcher"):
            parse_config({"rules": [{"id": "Commit.UnknownType", "matcher": "commit_scope"}]})

    def test_new_rule_appended(self) -> None:
        ruleset, _ = parse_config(
            {
                "rules": [
                    {
                        "id": "Path.StrictRoot",
                        "matcher": "placement_root",
                        "message": "{value} outside src",
                        "params": {"schema": {"src": ["script"]}},
                    }
                ]
            }
        )
        assert ruleset.rules[-1].id == "Path.StrictRoot"
        assert ruleset.rules[-1].category is Category.DIRECTORY_PLACEMENT
        result = validate(ruleset, PathRequest.from_string("entities/a.gd"))
        assert result.rule_ids() == ["Path.StrictRoot"]

    def test_extends_none(self) -> None:
        ruleset, _ = parse_config(
            {
                "extends": "none",
                "rules": [
                    {"id": "Team.BranchNumber", "matcher": "branch_issue_number", "message": "x"}
                ],
            }
        )
        assert [r.id for r in ruleset] == ["Team.BranchNumber"]

    def test_new_rule_needs_matcher(self) -> None:
        with pytest.raises(ValueError, match="new rules need a 'matcher'"):
            parse_config({"rules": [{"id": "Team.Rule", "message": "x"}]})

    def test_new_rule_needs_message(self) -> None:
        with pytest.raises(ValueError, match="new rules need a 'message'"):
            parse_config({"rules": [{"id": "Team.Rule", "matcher": "commit_type"}]})

    def test_duplicate_new_ids(self) -> None:
        entry = {"id": "Team.Rule", "matcher": "commit_type", "message": "x"}
        with pytest.raises(RuleSetError, match="Duplicate rule id 'Team.Rule'"):
            parse_config({"rules": [entry, dict(entry)]})

    def test_missing_id(self) -> None:
        with pytest.raises(ValueError, match="index 0 missing required 'id'"):
            parse_config({"rules": [{"severity": "warn"}]})

    def test_unknown_keys(self) -> None:
        with pytest.raises(ValueError, match="unknown keys"):
            parse_config({"rules": [{"id": "Commit.UnknownType", "level": "warn"}]})

    def test_invalid_severity(self) -> None:
        with pytest.raises(ValueError, match="invalid severity 'fatal'"):
            parse_config({"rules": [{"id": "Commit.UnknownType", "severity": "fatal"}]})


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_load(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "version: 1\ncommit:\n  types: [feat]\n")
        config = load_config(path)
        assert config.source == path
        rule = config.ruleset.get("Commit.UnknownType")
        assert rule is not None
        assert rule.params["types"] == ("feat",)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "commit: [unclosed\n")
        with pytest.raises(ConfigError, match="invalid YAML"):
            load_config(path)

    def test_invalid_content_prefixed_with_file_name(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "version: 3\n")
        with pytest.raises(ConfigError, match=r"^\.convcheck\.yml: unsupported version"):
            load_config(path)

    def test_rule_set_error_wrapped(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "suffixes: [lower]\n")
        with pytest.raises(ConfigError, match="invalid rule set"):
            load_config(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="cannot read file"):
            load_config(tmp_path / "absent.yml")


class TestResolveConfig:
    def test_find_first_candidate(self, tmp_path: Path) -> None:
        _write(tmp_path, "version: 1\n", name="convcheck.yml")
        preferred = _write(tmp_path, "version: 1\n", name=".convcheck.yaml")
        assert find_config(tmp_path) == preferred

    def test_no_config_uses_defaults(self, tmp_path: Path) -> None:
        config = resolve_config(tmp_path)
        assert config.source is None
        assert len(config.ruleset) == 12

    def test_explicit_path_wins(self, tmp_path: Path) -> None:
        _write(tmp_path, "version: 1\n")
        other = _write(tmp_path, "extends: none\n", name="other.yml")
        assert len(resolve_config(tmp_path, other).ruleset) == 0
