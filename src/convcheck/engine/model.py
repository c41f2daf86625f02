"""Engine data model: rules, requests, diagnostics and results."""

from __future__ import annotations

import enum
import string
from dataclasses import dataclass, field
from pathlib import PurePosixPath, PureWindowsPath
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Category(enum.Enum):
    """Which kind of artifact a rule checks."""

    BRANCH_NAME = "branch_name"
    COMMIT_MESSAGE = "commit_message"
    IDENTIFIER_CASING = "identifier_casing"
    NODE_SUFFIX = "node_suffix"
    DIRECTORY_PLACEMENT = "directory_placement"


class Severity(enum.Enum):
    """Severity of a rule. Only ERROR blocks a result."""

    ERROR = "error"
    WARNING = "warn"

    @classmethod
    def parse(cls, raw: str) -> Severity:
        """Parse a severity from configuration text (``warning`` is accepted too)."""
        value = str(raw).strip().lower()
        if value == "warning":
            return cls.WARNING
        try:
            return cls(value)
        except ValueError:
            valid = sorted(s.value for s in cls)
            msg = f"invalid severity '{raw}', must be one of {valid}"
            raise ValueError(msg) from None


class IdentifierKind(enum.Enum):
    """Declared kind of a source identifier."""

    VARIABLE = "variable"
    FUNCTION = "function"
    CONSTANT = "constant"
    CLASS_NAME = "class_name"
    SIGNAL = "signal"
    NODE_NAME = "node_name"


class ArtifactKind(enum.Enum):
    """Kind of file placed in the project tree."""

    SCRIPT = "script"
    SCENE = "scene"
    RESOURCE = "resource"
    TEXTURE = "texture"
    FONT = "font"


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

TEMPLATE_FIELDS: frozenset[str] = frozenset({"value", "expected", "detail", "rule_id"})


def template_fields(template: str) -> set[str]:
    """Return the replacement field names used by a message template.

    Raises ``ValueError`` for malformed templates (unbalanced braces) and for
    fields that are not bare names: positional ``{}``, attribute or index
    access, conversions and format specs.
    """
    names: set[str] = set()
    for _literal, field_name, spec, conv in string.Formatter().parse(template):
        if field_name is None:
            continue
        if not field_name.isidentifier():
            msg = f"replacement field '{{{field_name}}}' must be a bare name"
            raise ValueError(msg)
        if conv or spec:
            msg = f"replacement field '{{{field_name}}}' takes no conversion or format spec"
            raise ValueError(msg)
        names.add(field_name)
    return names


@dataclass(frozen=True)
class Mismatch:
    """What a matcher reports when its grammar check fails."""

    value: str
    expected: str
    span: tuple[int, int] | None = None
    detail: str = ""


@dataclass(frozen=True)
class Rule:
    """A single named convention check.

    ``matcher`` names an entry of :data:`convcheck.engine.matchers.MATCHERS`.
    ``message`` is a ``str.format`` template over ``value``, ``expected``,
    ``detail`` and ``rule_id``.
    """

    id: str
    category: Category
    matcher: str
    message: str
    severity: Severity = Severity.ERROR
    description: str = ""
    params: Mapping[str, Any] = field(default_factory=dict)
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.id or not self.id.strip():
            msg = "rule id must be a non-empty string"
            raise ValueError(msg)
        # params are read-only once the rule exists
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def __hash__(self) -> int:
        return hash((self.id, self.category, self.matcher, self.severity, self.enabled))

    def render(self, mismatch: Mismatch) -> str:
        """Fill the message template with the mismatch fields."""
        return self.message.format(
            value=mismatch.value,
            expected=mismatch.expected,
            detail=mismatch.detail,
            rule_id=self.id,
        )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BranchNameRequest:
    """Check a git branch name."""

    raw: str

    @property
    def categories(self) -> tuple[Category, ...]:
        return (Category.BRANCH_NAME,)


@dataclass(frozen=True)
class CommitMessageRequest:
    """Check a commit message (only the header line is parsed)."""

    raw: str

    @property
    def categories(self) -> tuple[Category, ...]:
        return (Category.COMMIT_MESSAGE,)


@dataclass(frozen=True)
class IdentifierRequest:
    """Check a declared identifier against the casing for its kind."""

    name: str
    kind: IdentifierKind

    @property
    def categories(self) -> tuple[Category, ...]:
        return (Category.IDENTIFIER_CASING, Category.NODE_SUFFIX)


@dataclass(frozen=True)
class PathRequest:
    """Check where a file sits in the project tree.

    When *kind* is ``None`` the artifact kind is inferred from the file
    extension of the last segment.
    """

    segments: tuple[str, ...]
    kind: ArtifactKind | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "segments", tuple(self.segments))

    @classmethod
    def from_string(cls, path: str, kind: ArtifactKind | None = None) -> PathRequest:
        """Split a POSIX or Windows style relative path into segments."""
        pure = PureWindowsPath(path) if "\\" in path else PurePosixPath(path)
        segments = tuple(p for p in pure.parts if p not in ("", ".", "/", "\\"))
        return cls(segments=segments, kind=kind)

    @property
    def categories(self) -> tuple[Category, ...]:
        return (Category.DIRECTORY_PLACEMENT,)

    @property
    def display(self) -> str:
        return "/".join(self.segments)


ValidationRequest = BranchNameRequest | CommitMessageRequest | IdentifierRequest | PathRequest


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Diagnostic:
    """One rule's finding about a request."""

    rule_id: str
    severity: Severity
    message: str
    span: tuple[int, int] | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "message": self.message,
            "span": list(self.span) if self.span is not None else None,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Verdict for one request: ``ok`` iff no ERROR diagnostic is present."""

    ok: bool
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def errors(self) -> tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.severity is Severity.ERROR)

    @property
    def warnings(self) -> tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.severity is Severity.WARNING)

    def rule_ids(self) -> list[str]:
        return [d.rule_id for d in self.diagnostics]

    def to_dict(self) -> dict[str, object]:
        return {
            "ok": self.ok,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }
