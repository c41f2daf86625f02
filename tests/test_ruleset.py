"""Tests for convcheck.engine.ruleset: construction, overrides and defaults."""

from __future__ import annotations

import pytest

from convcheck.engine.model import Category, Rule, Severity
from convcheck.engine.ruleset import (
    ConventionSettings,
    RuleSet,
    RuleSetError,
    default_rules,
    default_ruleset,
)


def _branch_rule(rule_id: str = "BranchName.Custom", **kwargs: object) -> Rule:
    fields: dict[str, object] = {
        "id": rule_id,
        "category": Category.BRANCH_NAME,
        "matcher": "branch_issue_number",
        "message": "Branch '{value}' is bad",
    }
    fields.update(kwargs)
    return Rule(**fields)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------


class TestRule:
    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-empty"):
            _branch_rule("  ")

    def test_params_are_read_only(self) -> None:
        rule = _branch_rule(params={"exempt": ("main",)})
        with pytest.raises(TypeError):
            rule.params["exempt"] = ()  # type: ignore[index]

    def test_rule_is_hashable(self) -> None:
        assert len({_branch_rule(), _branch_rule()}) == 1


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_duplicate_id(self) -> None:
        with pytest.raises(RuleSetError, match="Duplicate rule id 'BranchName.Custom'"):
            RuleSet([_branch_rule(), _branch_rule()])

    def test_unknown_matcher(self) -> None:
        with pytest.raises(RuleSetError, match="unknown matcher 'nope'"):
            RuleSet([_branch_rule(matcher="nope")])

    def test_category_mismatch(self) -> None:
        with pytest.raises(RuleSetError, match="checks commit_message"):
            RuleSet([_branch_rule(matcher="commit_type")])

    def test_unknown_template_field(self) -> None:
        with pytest.raises(RuleSetError, match="unknown fields"):
            RuleSet([_branch_rule(message="Bad {branch}")])

    def test_malformed_template(self) -> None:
        with pytest.raises(RuleSetError, match="malformed message template"):
            RuleSet([_branch_rule(message="Bad {value")])

    @pytest.mark.parametrize(
        "message",
        ["Bad {value[40]}", "Bad {value.upper}", "Bad {value:d}", "Bad {value!r}", "Bad {}"],
    )
    def test_template_field_must_be_bare_name(self, message: str) -> None:
        with pytest.raises(RuleSetError, match="malformed message template"):
            RuleSet([_branch_rule(message=message)])

    @pytest.mark.parametrize("suffix", ["B", "BUTTON", "btn", "B1"])
    def test_invalid_suffix(self, suffix: str) -> None:
        rule = Rule(
            id="NodeName.Custom",
            category=Category.NODE_SUFFIX,
            matcher="node_suffix",
            message="{value}",
            params={"suffixes": {suffix: "Button"}},
        )
        with pytest.raises(RuleSetError, match="invalid suffix"):
            RuleSet([rule])

    def test_placement_rule_needs_schema(self) -> None:
        rule = Rule(
            id="Path.Custom",
            category=Category.DIRECTORY_PLACEMENT,
            matcher="placement_root",
            message="{value}",
        )
        with pytest.raises(RuleSetError, match="schema"):
            RuleSet([rule])

    def test_empty_ruleset_is_valid(self) -> None:
        ruleset = RuleSet([])
        assert len(ruleset) == 0
        assert ruleset.index_of("Anything") == 0


# ---------------------------------------------------------------------------
# Lookup and overrides
# ---------------------------------------------------------------------------


class TestLookup:
    def test_registration_order(self, ruleset: RuleSet) -> None:
        ids = [r.id for r in ruleset]
        assert ids[0] == "BranchName.MissingIssueNumber"
        assert ids[-1] == "Path.UnrecognizedKind"
        assert ruleset.index_of("Commit.MissingSeparator") < ruleset.index_of("Commit.UnknownType")

    def test_unknown_id_sorts_last(self, ruleset: RuleSet) -> None:
        assert ruleset.index_of("Nope") == len(ruleset)

    def test_contains_and_get(self, ruleset: RuleSet) -> None:
        assert "Commit.UnknownType" in ruleset
        rule = ruleset.get("Commit.UnknownType")
        assert rule is not None
        assert rule.category is Category.COMMIT_MESSAGE
        assert ruleset.get("Nope") is None

    def test_by_category(self, ruleset: RuleSet) -> None:
        commit_ids = [r.id for r in ruleset.by_category(Category.COMMIT_MESSAGE)]
        assert commit_ids == [
            "Commit.MissingSeparator",
            "Commit.UnknownType",
            "Commit.EmptyScope",
            "Commit.MalformedHeader",
            "Commit.MissingDescription",
        ]


class TestOverrides:
    def test_disable_and_regrade(self, ruleset: RuleSet) -> None:
        updated = ruleset.with_overrides(
            enabled={"Commit.EmptyScope": False},
            severities={"Commit.UnknownType": Severity.WARNING},
        )
        assert updated is not ruleset
        disabled = updated.get("Commit.EmptyScope")
        regraded = updated.get("Commit.UnknownType")
        original = ruleset.get("Commit.EmptyScope")
        assert disabled is not None
        assert regraded is not None
        assert original is not None
        assert disabled.enabled is False
        assert regraded.severity is Severity.WARNING
        assert original.enabled is True
        assert [r.id for r in updated] == [r.id for r in ruleset]

    def test_unknown_override(self, ruleset: RuleSet) -> None:
        with pytest.raises(RuleSetError, match="Nope"):
            ruleset.with_overrides(enabled={"Nope": False})


# ---------------------------------------------------------------------------
# Default catalogue
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_twelve_rules(self) -> None:
        assert len(default_rules()) == 12

    def test_every_category_covered(self, ruleset: RuleSet) -> None:
        assert {r.category for r in ruleset} == set(Category)

    def test_unrecognized_kind_is_a_warning(self, ruleset: RuleSet) -> None:
        rule = ruleset.get("Path.UnrecognizedKind")
        assert rule is not None
        assert rule.severity is Severity.WARNING

    def test_settings_flow_into_params(self) -> None:
        ruleset = default_ruleset(ConventionSettings(commit_types=("perf",)))
        rule = ruleset.get("Commit.UnknownType")
        assert rule is not None
        assert rule.params["types"] == ("perf",)

    def test_bad_placement_settings(self) -> None:
        with pytest.raises(RuleSetError, match="invalid kind"):
            default_ruleset(ConventionSettings(placement={"levels": ["model"]}))
