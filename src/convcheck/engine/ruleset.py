"""RuleSet: an ordered, immutable, id-unique collection of rules.

Also provides the default rule catalogue for game projects.
"""

from __future__ import annotations

import collections.abc
import dataclasses
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from convcheck.engine.matchers import (
    DEFAULT_COMMIT_TYPES,
    DEFAULT_EXEMPT_BRANCHES,
    MATCHERS,
    SUFFIX_MAX_LEN,
    SUFFIX_MIN_LEN,
)
from convcheck.engine.model import (
    TEMPLATE_FIELDS,
    ArtifactKind,
    Category,
    Rule,
    Severity,
    template_fields,
)
from convcheck.engine.placement import PlacementSchema

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RuleSetError(ValueError):
    """Raised when a RuleSet is misconfigured (duplicate ids, bad matcher, ...)."""


# ---------------------------------------------------------------------------
# RuleSet
# ---------------------------------------------------------------------------


class RuleSet:
    """Ordered rules, unique by id, validated once at construction.

    Registration order is the order of *rules*; it decides the order of
    diagnostics in every ValidationResult.
    """

    __slots__ = ("_by_category", "_by_id", "_index", "_rules")

    def __init__(self, rules: Iterable[Rule]) -> None:
        rules_tuple = tuple(rules)
        by_id: dict[str, Rule] = {}
        for rule in rules_tuple:
            if rule.id in by_id:
                msg = f"Duplicate rule id '{rule.id}'"
                raise RuleSetError(msg)
            _check_rule(rule)
            by_id[rule.id] = rule

        by_category: dict[Category, tuple[Rule, ...]] = {
            category: tuple(r for r in rules_tuple if r.category is category)
            for category in Category
        }

        self._rules = rules_tuple
        self._by_id = by_id
        self._index = {rule.id: idx for idx, rule in enumerate(rules_tuple)}
        self._by_category = by_category

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id

    def __repr__(self) -> str:
        return f"RuleSet({[r.id for r in self._rules]!r})"

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def get(self, rule_id: str) -> Rule | None:
        return self._by_id.get(rule_id)

    def index_of(self, rule_id: str) -> int:
        """Registration position of *rule_id*; unknown ids sort last."""
        return self._index.get(rule_id, len(self._rules))

    def by_category(self, category: Category) -> tuple[Rule, ...]:
        """All rules of *category* (enabled or not), in registration order."""
        return self._by_category[category]

    def with_overrides(
        self,
        *,
        enabled: Mapping[str, bool] | None = None,
        severities: Mapping[str, Severity] | None = None,
    ) -> RuleSet:
        """Return a new RuleSet with rules enabled/disabled or re-graded.

        Raises ``RuleSetError`` if an override names an unknown rule id.
        """
        enabled = dict(enabled or {})
        severities = dict(severities or {})
        unknown = sorted((set(enabled) | set(severities)) - set(self._by_id))
        if unknown:
            msg = f"Overrides reference unknown rule ids: {', '.join(unknown)}"
            raise RuleSetError(msg)

        updated: list[Rule] = []
        for rule in self._rules:
            changes: dict[str, Any] = {}
            if rule.id in enabled:
                changes["enabled"] = bool(enabled[rule.id])
            if rule.id in severities:
                changes["severity"] = severities[rule.id]
            updated.append(dataclasses.replace(rule, **changes) if changes else rule)
        return RuleSet(updated)


def _check_rule(rule: Rule) -> None:
    """Validate one rule against the matcher registry and template fields."""
    spec = MATCHERS.get(rule.matcher)
    if spec is None:
        msg = (
            f"Rule '{rule.id}': unknown matcher '{rule.matcher}', "
            f"must be one of {sorted(MATCHERS)}"
        )
        raise RuleSetError(msg)
    if spec.category is not rule.category:
        msg = (
            f"Rule '{rule.id}': matcher '{rule.matcher}' checks "
            f"{spec.category.value}, not {rule.category.value}"
        )
        raise RuleSetError(msg)

    try:
        fields = template_fields(rule.message)
    except ValueError as exc:
        msg = f"Rule '{rule.id}': malformed message template: {exc}"
        raise RuleSetError(msg) from exc
    unknown = sorted(fields - TEMPLATE_FIELDS)
    if unknown:
        msg = (
            f"Rule '{rule.id}': message template uses unknown fields {unknown}, "
            f"must be among {sorted(TEMPLATE_FIELDS)}"
        )
        raise RuleSetError(msg)

    if rule.category is Category.NODE_SUFFIX:
        _check_suffixes(rule.id, rule.params.get("suffixes", {}))
    if rule.category is Category.DIRECTORY_PLACEMENT and not isinstance(
        rule.params.get("schema"), PlacementSchema
    ):
        msg = f"Rule '{rule.id}': placement rules need a compiled 'schema' parameter"
        raise RuleSetError(msg)


def _check_suffixes(rule_id: str, suffixes: object) -> None:
    if not isinstance(suffixes, collections.abc.Mapping):
        msg = f"Rule '{rule_id}': 'suffixes' must be a mapping of suffix to node type"
        raise RuleSetError(msg)
    for suffix in suffixes:
        text = str(suffix)
        if not (SUFFIX_MIN_LEN <= len(text) <= SUFFIX_MAX_LEN) or not (
            text.isascii() and text.isalpha() and text.isupper()
        ):
            msg = (
                f"Rule '{rule_id}': invalid suffix '{text}', expected "
                f"{SUFFIX_MIN_LEN}-{SUFFIX_MAX_LEN} uppercase letters"
            )
            raise RuleSetError(msg)


# ---------------------------------------------------------------------------
# Default catalogue
# ---------------------------------------------------------------------------

DEFAULT_SUFFIXES: dict[str, str] = {
    "BTN": "Button",
    "LBL": "Label",
    "SPR": "Sprite2D",
    "ANIM": "AnimationPlayer",
    "COL": "CollisionShape2D",
    "AREA": "Area2D",
    "BODY": "CharacterBody2D",
    "CAM": "Camera2D",
    "TMR": "Timer",
    "PNL": "Panel",
    "CTR": "Container",
    "TEX": "TextureRect",
    "SFX": "AudioStreamPlayer",
    "RAY": "RayCast2D",
    "MAP": "TileMap",
    "PRT": "GPUParticles2D",
    "LE": "LineEdit",
    "PB": "ProgressBar",
}

DEFAULT_PLACEMENT: dict[str, list[str]] = {
    "entities": ["script", "scene", "resource"],
    "entities/*": ["script", "scene", "resource"],
    "entities/*/sprites": ["texture"],
    "entities/player": ["script", "scene"],
    "entities/player/sprites": ["texture"],
    "levels": ["scene", "script", "resource"],
    "levels/tilesets": ["resource", "texture"],
    "menus": ["scene", "script"],
    "menus/ui": ["scene", "script", "resource"],
    "menus/ui/theme_default": ["resource"],
    "menus/ui/theme_default/assets": ["texture"],
    "menus/ui/theme_default/fonts": ["font"],
    "autoloads": ["script"],
    "assets": ["texture", "font", "resource"],
    "assets/fonts": ["font"],
}


@dataclass(frozen=True)
class ConventionSettings:
    """Parameters shared by the default rules."""

    commit_types: tuple[str, ...] = DEFAULT_COMMIT_TYPES
    require_space: bool = True
    allow_breaking: bool = True
    ignore_merges: bool = True
    exempt_branches: tuple[str, ...] = DEFAULT_EXEMPT_BRANCHES
    suffixes: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_SUFFIXES))
    placement: Mapping[str, Iterable[ArtifactKind | str]] = field(
        default_factory=lambda: dict(DEFAULT_PLACEMENT)
    )


def default_rules(settings: ConventionSettings | None = None) -> list[Rule]:
    """Build the canonical rule list in registration order.

    Raises ``RuleSetError`` if the placement mapping cannot be compiled.
    """
    s = settings or ConventionSettings()

    try:
        schema = PlacementSchema.from_mapping(s.placement)
    except ValueError as exc:
        raise RuleSetError(str(exc)) from exc

    branch = {"exempt": tuple(s.exempt_branches)}
    commit = {
        "types": tuple(s.commit_types),
        "require_space": s.require_space,
        "allow_breaking": s.allow_breaking,
        "ignore_merges": s.ignore_merges,
    }
    suffix = {"suffixes": dict(s.suffixes)}
    placement = {"schema": schema}

    return [
        Rule(
            id="BranchName.MissingIssueNumber",
            category=Category.BRANCH_NAME,
            matcher="branch_issue_number",
            message="Branch '{value}' has no issue number: expected {expected}",
            description="Branch names start with the issue number they address.",
            params=branch,
        ),
        Rule(
            id="BranchName.InvalidTitleCasing",
            category=Category.BRANCH_NAME,
            matcher="branch_title",
            message="Branch '{value}' title is not kebab-case ({detail}): expected {expected}",
            description="Branch titles are lowercase words separated by single hyphens.",
            params=branch,
        ),
        Rule(
            id="Commit.MissingSeparator",
            category=Category.COMMIT_MESSAGE,
            matcher="commit_separator",
            message="Commit header '{value}': {detail}; expected {expected}",
            description="Commit headers separate the type from the description with ': '.",
            params=commit,
        ),
        Rule(
            id="Commit.UnknownType",
            category=Category.COMMIT_MESSAGE,
            matcher="commit_type",
            message="Unknown commit type '{value}': expected one of {expected}",
            description="Commit types come from a fixed, case-sensitive list.",
            params=commit,
        ),
        Rule(
            id="Commit.EmptyScope",
            category=Category.COMMIT_MESSAGE,
            matcher="commit_scope",
            message="Commit prefix '{value}' has an empty scope: expected {expected}",
            description="A scope, when present, is not empty.",
            params=commit,
        ),
        Rule(
            id="Commit.MalformedHeader",
            category=Category.COMMIT_MESSAGE,
            matcher="commit_header",
            message="Commit prefix '{value}' is malformed ({detail}): expected {expected}",
            description="The prefix before ':' is a type with an optional scope.",
            params=commit,
        ),
        Rule(
            id="Commit.MissingDescription",
            category=Category.COMMIT_MESSAGE,
            matcher="commit_description",
            message="Commit header '{value}' has no description: expected {expected}",
            description="Every commit header carries a description.",
            params=commit,
        ),
        Rule(
            id="Identifier.CasingMismatch",
            category=Category.IDENTIFIER_CASING,
            matcher="identifier_casing",
            message="Identifier '{value}' should be {expected} ({detail})",
            description="Identifiers use the casing class of their declared kind.",
        ),
        Rule(
            id="NodeName.UnknownSuffix",
            category=Category.NODE_SUFFIX,
            matcher="node_suffix",
            message="Node name '{value}': {detail}; expected {expected}",
            description="Node names end with an uppercase type suffix from the suffix table.",
            params=suffix,
        ),
        Rule(
            id="Path.UnknownRoot",
            category=Category.DIRECTORY_PLACEMENT,
            matcher="placement_root",
            message="'{value}': {detail}; expected {expected}",
            description="Files live under one of the known top-level directories.",
            params=placement,
        ),
        Rule(
            id="Path.KindNotAllowedHere",
            category=Category.DIRECTORY_PLACEMENT,
            matcher="placement_kind",
            message="'{value}': {detail} ({expected})",
            description="Each directory accepts only certain kinds of files.",
            params=placement,
        ),
        Rule(
            id="Path.UnrecognizedKind",
            category=Category.DIRECTORY_PLACEMENT,
            matcher="placement_extension",
            message="'{value}': {detail}",
            severity=Severity.WARNING,
            description="Files have an extension that maps to a known artifact kind.",
            params=placement,
        ),
    ]


def default_ruleset(settings: ConventionSettings | None = None) -> RuleSet:
    """The default rules as a validated RuleSet."""
    return RuleSet(default_rules(settings))
