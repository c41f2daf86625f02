"""Engine: rule model, matchers, rule sets and validation."""

from convcheck.engine.matchers import MATCHERS, MatcherSpec, parse_header, split_node_suffix
from convcheck.engine.model import (
    ArtifactKind,
    BranchNameRequest,
    Category,
    CommitMessageRequest,
    Diagnostic,
    IdentifierKind,
    IdentifierRequest,
    Mismatch,
    PathRequest,
    Rule,
    Severity,
    ValidationRequest,
    ValidationResult,
)
from convcheck.engine.placement import PlacementSchema, infer_kind
from convcheck.engine.ruleset import (
    DEFAULT_PLACEMENT,
    DEFAULT_SUFFIXES,
    ConventionSettings,
    RuleSet,
    RuleSetError,
    default_rules,
    default_ruleset,
)
from convcheck.engine.validator import aggregate, validate, validate_batch

__all__ = [
    "DEFAULT_PLACEMENT",
    "DEFAULT_SUFFIXES",
    "MATCHERS",
    "ArtifactKind",
    "BranchNameRequest",
    "Category",
    "CommitMessageRequest",
    "ConventionSettings",
    "Diagnostic",
    "IdentifierKind",
    "IdentifierRequest",
    "MatcherSpec",
    "Mismatch",
    "PathRequest",
    "PlacementSchema",
    "Rule",
    "RuleSet",
    "RuleSetError",
    "Severity",
    "ValidationRequest",
    "ValidationResult",
    "aggregate",
    "default_rules",
    "default_ruleset",
    "infer_kind",
    "parse_header",
    "split_node_suffix",
    "validate",
    "validate_batch",
]
