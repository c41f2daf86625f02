"""Grammar matchers: pure functions implementing each rule category's check.

Every matcher has the signature ``(request, params) -> Mismatch | None`` and
returns ``None`` both when the request conforms and when the matcher does not
apply to the request (e.g. the suffix check on a variable name).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from convcheck.engine.model import (
    BranchNameRequest,
    Category,
    CommitMessageRequest,
    IdentifierKind,
    IdentifierRequest,
    Mismatch,
    PathRequest,
)
from convcheck.engine.placement import PlacementSchema, infer_kind

if TYPE_CHECKING:
    from collections.abc import Mapping

    from convcheck.engine.model import ValidationRequest

MatcherFn = Callable[[Any, "Mapping[str, Any]"], "Mismatch | None"]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_COMMIT_TYPES: tuple[str, ...] = ("feat", "fix", "docs", "style", "refactor", "chore")
DEFAULT_EXEMPT_BRANCHES: tuple[str, ...] = ("main", "master", "develop")

BRANCH_PATTERN = "<issue-number>-<kebab-case-title>"
COMMIT_PATTERN = "<type>[(scope)]: <description>"

_LEADING_DIGITS = re.compile(r"[0-9]+")
_COMMIT_LEFT = re.compile(r"^(?P<type>[^\s()!:]+)(?:\((?P<scope>[^()]*)\))?(?P<bang>!)?$")
_MERGE_PREFIXES = ("Merge ", 'Revert "')

_LOWER_SNAKE = "lower_snake_case"
_UPPER_SNAKE = "UPPER_SNAKE_CASE"
_PASCAL = "PascalCase"

_CASING_BY_KIND: dict[IdentifierKind, str] = {
    IdentifierKind.VARIABLE: _LOWER_SNAKE,
    IdentifierKind.FUNCTION: _LOWER_SNAKE,
    IdentifierKind.SIGNAL: _LOWER_SNAKE,
    IdentifierKind.CONSTANT: _UPPER_SNAKE,
    IdentifierKind.CLASS_NAME: _PASCAL,
    IdentifierKind.NODE_NAME: _PASCAL,
}

_LOWER_SNAKE_CHARS = frozenset("abcdefghijklmnopqrstuvwxyz0123456789_")
_UPPER_SNAKE_CHARS = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_")
_PASCAL_CHARS = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789")

SUFFIX_MIN_LEN = 2
SUFFIX_MAX_LEN = 4


# ---------------------------------------------------------------------------
# Branch name
# ---------------------------------------------------------------------------


def _is_exempt_branch(raw: str, params: Mapping[str, Any]) -> bool:
    exempt = params.get("exempt", DEFAULT_EXEMPT_BRANCHES)
    return raw in exempt


def match_branch_issue_number(
    request: BranchNameRequest, params: Mapping[str, Any]
) -> Mismatch | None:
    """Fail when the branch name has no leading issue number."""
    if _is_exempt_branch(request.raw, params):
        return None
    if _LEADING_DIGITS.match(request.raw):
        return None
    end = request.raw.find("-")
    span = (0, end if end > 0 else len(request.raw))
    return Mismatch(
        value=request.raw,
        expected=BRANCH_PATTERN,
        span=span,
        detail="no leading issue number",
    )


def _title_problem(title: str) -> tuple[int, str] | None:
    """Return ``(offset, reason)`` for the first kebab-case violation in *title*."""
    if not title:
        return 0, "title is empty"
    for idx, ch in enumerate(title):
        if ch.isupper():
            return idx, f"uppercase letter '{ch}'"
        if ch == "_":
            return idx, "underscore"
        if ch == "-":
            if idx == 0:
                return idx, "leading hyphen"
            if title[idx - 1] == "-":
                return idx, "consecutive hyphens"
            if idx == len(title) - 1:
                return idx, "trailing hyphen"
            continue
        if not (ch.isascii() and (ch.islower() or ch.isdigit())):
            return idx, f"invalid character '{ch}'"
    return None


def match_branch_title(request: BranchNameRequest, params: Mapping[str, Any]) -> Mismatch | None:
    """Fail when the part after ``<digits>-`` is not lowercase kebab-case."""
    raw = request.raw
    if _is_exempt_branch(raw, params):
        return None

    offset = 0
    digits = _LEADING_DIGITS.match(raw)
    if digits is not None:
        offset = digits.end()
        if raw[offset:offset + 1] != "-":
            return Mismatch(
                value=raw,
                expected=BRANCH_PATTERN,
                span=(offset, min(offset + 1, len(raw))),
                detail="issue number must be followed by '-' and a title",
            )
        offset += 1

    problem = _title_problem(raw[offset:])
    if problem is None:
        return None
    pos, reason = problem
    start = offset + pos
    return Mismatch(
        value=raw,
        expected=BRANCH_PATTERN,
        span=(start, min(start + 1, len(raw))),
        detail=reason,
    )


# ---------------------------------------------------------------------------
# Commit message
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommitHeader:
    """A commit header split on its first colon."""

    text: str
    colon: int  # index of the first ':' or -1
    left: str
    right: str

    @property
    def has_separator(self) -> bool:
        return self.colon >= 0

    @property
    def type_token(self) -> str:
        """Prefix before any '(' and without a trailing '!'."""
        token = self.left.split("(", 1)[0]
        return token[:-1] if token.endswith("!") else token

    @property
    def description(self) -> str:
        """Right side with exactly one leading space removed."""
        return self.right[1:] if self.right.startswith(" ") else self.right


def parse_header(raw: str) -> CommitHeader:
    """Split the first line of a commit message on its first ``:``."""
    text = raw.split("\n", 1)[0].rstrip("\r")
    colon = text.find(":")
    if colon < 0:
        return CommitHeader(text=text, colon=-1, left=text, right="")
    return CommitHeader(text=text, colon=colon, left=text[:colon], right=text[colon + 1:])


def _commit_header(request: CommitMessageRequest, params: Mapping[str, Any]) -> CommitHeader | None:
    """Return the parsed header, or ``None`` when the commit is exempt."""
    if params.get("ignore_merges", True) and request.raw.startswith(_MERGE_PREFIXES):
        return None
    return parse_header(request.raw)


def match_commit_separator(
    request: CommitMessageRequest, params: Mapping[str, Any]
) -> Mismatch | None:
    """Fail when the header has no ``:`` (or no space after it, if required)."""
    header = _commit_header(request, params)
    if header is None:
        return None
    if not header.has_separator:
        return Mismatch(
            value=header.text,
            expected=COMMIT_PATTERN,
            span=(0, len(header.text)),
            detail="missing ':' separator",
        )
    require_space = bool(params.get("require_space", True))
    if require_space and header.right.strip() and not header.right.startswith(" "):
        return Mismatch(
            value=header.text,
            expected=COMMIT_PATTERN,
            span=(header.colon, header.colon + 1),
            detail="expected ': ' (colon followed by a space)",
        )
    return None


def match_commit_type(request: CommitMessageRequest, params: Mapping[str, Any]) -> Mismatch | None:
    """Fail when the type prefix is not one of the allowed types (case-sensitive)."""
    header = _commit_header(request, params)
    if header is None or not header.has_separator:
        return None
    types = tuple(params.get("types", DEFAULT_COMMIT_TYPES))
    token = header.type_token
    if token in types:
        return None
    return Mismatch(
        value=token,
        expected=", ".join(types),
        span=(0, len(token)),
        detail=f"unknown commit type '{token}'",
    )


def match_commit_scope(request: CommitMessageRequest, params: Mapping[str, Any]) -> Mismatch | None:
    """Fail when the scope parentheses are present but empty."""
    header = _commit_header(request, params)
    if header is None or not header.has_separator:
        return None
    open_idx = header.left.find("(")
    if open_idx < 0:
        return None
    close_idx = header.left.find(")", open_idx)
    if close_idx < 0:
        return None
    if header.left[open_idx + 1:close_idx].strip():
        return None
    return Mismatch(
        value=header.left,
        expected="a non-empty scope inside '( )'",
        span=(open_idx, close_idx + 1),
        detail="empty scope",
    )


def match_commit_header(
    request: CommitMessageRequest,
    params: Mapping[str, Any],
) -> Mismatch | None:
    """Fail when the left side is not shaped like ``type[(scope)][!]``."""
    header = _commit_header(request, params)
    if header is None or not header.has_separator:
        return None
    left = header.left
    m = _COMMIT_LEFT.match(left)
    if m is None:
        return Mismatch(
            value=left,
            expected="type[(scope)]",
            span=(0, len(left)),
            detail="malformed type/scope prefix",
        )
    if m.group("bang") and not params.get("allow_breaking", True):
        bang = m.start("bang")
        return Mismatch(
            value=left,
            expected="type[(scope)]",
            span=(bang, bang + 1),
            detail="breaking-change marker '!' is not allowed",
        )
    return None


def match_commit_description(
    request: CommitMessageRequest, params: Mapping[str, Any]
) -> Mismatch | None:
    """Fail when nothing but whitespace follows the separator."""
    header = _commit_header(request, params)
    if header is None or not header.has_separator:
        return None
    if header.description.strip():
        return None
    return Mismatch(
        value=header.text,
        expected="a description after ': '",
        span=(header.colon, len(header.text)),
        detail="missing description",
    )


# ---------------------------------------------------------------------------
# Identifier casing
# ---------------------------------------------------------------------------


def expected_casing(kind: IdentifierKind) -> str:
    """Name of the casing class expected for *kind*."""
    return _CASING_BY_KIND[kind]


def casing_violation(name: str, casing: str) -> int | None:
    """Return the offset of the first character violating *casing*, or ``None``.

    An empty name violates every class at offset 0.
    """
    if not name:
        return 0
    if casing == _LOWER_SNAKE:
        allowed = _LOWER_SNAKE_CHARS
        if name[0].isdigit():
            return 0
    elif casing == _UPPER_SNAKE:
        allowed = _UPPER_SNAKE_CHARS
        if name[0].isdigit():
            return 0
    elif casing == _PASCAL:
        allowed = _PASCAL_CHARS
        if not ("A" <= name[0] <= "Z"):
            return 0
    else:
        msg = f"unknown casing class '{casing}'"
        raise ValueError(msg)

    for idx, ch in enumerate(name):
        if ch not in allowed:
            return idx
    return None


def match_identifier_casing(
    request: IdentifierRequest,
    params: Mapping[str, Any],
) -> Mismatch | None:
    """Fail when the identifier does not use the casing class of its kind."""
    casing = expected_casing(request.kind)
    pos = casing_violation(request.name, casing)
    if pos is None:
        return None
    span = (pos, min(pos + 1, len(request.name)))
    return Mismatch(
        value=request.name,
        expected=casing,
        span=span,
        detail=f"{request.kind.value} names use {casing}",
    )


# ---------------------------------------------------------------------------
# Node suffix
# ---------------------------------------------------------------------------


def split_node_suffix(name: str, suffixes: Mapping[str, str]) -> tuple[str, str] | None:
    """Split *name* into ``(stem, suffix)`` using the longest known suffix.

    Returns ``None`` when no table entry ends the name or the stem would be
    empty.
    """
    for length in range(SUFFIX_MAX_LEN, SUFFIX_MIN_LEN - 1, -1):
        if len(name) <= length:
            continue
        candidate = name[-length:]
        if candidate in suffixes:
            return name[:-length], candidate
    return None


def match_node_suffix(request: IdentifierRequest, params: Mapping[str, Any]) -> Mismatch | None:
    """Fail when a node name lacks a recognized uppercase type suffix."""
    if request.kind is not IdentifierKind.NODE_NAME:
        return None
    suffixes: Mapping[str, str] = params.get("suffixes", {})
    if split_node_suffix(request.name, suffixes) is not None:
        return None

    # Point at the trailing uppercase run, if any.
    name = request.name
    start = len(name)
    while start > 0 and name[start - 1].isupper():
        start -= 1
    trailing = name[start:]
    span = (start, len(name)) if trailing else (len(name), len(name))
    detail = f"suffix '{trailing}' is not in the suffix table" if trailing else "no type suffix"
    return Mismatch(
        value=name,
        expected="PascalCase name ending in one of " + ", ".join(sorted(suffixes)),
        span=span,
        detail=detail,
    )


# ---------------------------------------------------------------------------
# Directory placement
# ---------------------------------------------------------------------------


def _segment_span(segments: tuple[str, ...], first: int, last: int) -> tuple[int, int]:
    """Offsets of ``segments[first:last]`` inside ``"/".join(segments)``."""
    start = sum(len(s) + 1 for s in segments[:first])
    end = start + len("/".join(segments[first:last]))
    return start, end


def _schema(params: Mapping[str, Any]) -> PlacementSchema:
    schema = params.get("schema")
    if not isinstance(schema, PlacementSchema):
        msg = "placement matchers require a 'schema' parameter of type PlacementSchema"
        raise TypeError(msg)
    return schema


def match_placement_root(request: PathRequest, params: Mapping[str, Any]) -> Mismatch | None:
    """Fail when the first segment is not a schema root.

    The last segment is the file name and is never walked.
    """
    schema = _schema(params)
    segments = request.segments
    if not segments:
        return Mismatch(value="", expected="a path", span=None, detail="empty path")
    placement = schema.walk(segments[:-1])
    if placement.root_known:
        return None
    if len(segments) == 1:
        detail = "file is not under any known top-level directory"
    else:
        detail = f"unknown top-level directory '{segments[0]}'"
    return Mismatch(
        value=request.display,
        expected="a path under one of: " + ", ".join(schema.roots),
        span=_segment_span(segments, 0, 1),
        detail=detail,
    )


def match_placement_kind(request: PathRequest, params: Mapping[str, Any]) -> Mismatch | None:
    """Fail when the artifact kind is not allowed under the matched subtree."""
    schema = _schema(params)
    segments = request.segments
    if not segments:
        return None
    kind = request.kind or infer_kind(segments)
    if kind is None:
        return None
    placement = schema.walk(segments[:-1])
    if not placement.root_known or kind in placement.allowed:
        return None

    allowed = ", ".join(sorted(k.value for k in placement.allowed)) or "nothing"
    where = "/".join(segments[:placement.depth])
    declared = "/".join(placement.declared_at) or where
    return Mismatch(
        value=request.display,
        expected=f"{declared}/ accepts {allowed}",
        span=_segment_span(segments, 0, placement.depth),
        detail=f"{kind.value} files are not allowed under '{where}'",
    )


def match_placement_extension(request: PathRequest, params: Mapping[str, Any]) -> Mismatch | None:
    """Fail when no kind was declared and the extension maps to none."""
    if request.kind is not None or not request.segments:
        return None
    if infer_kind(request.segments) is not None:
        return None
    segments = request.segments
    last = len(segments) - 1
    return Mismatch(
        value=request.display,
        expected="a known artifact extension",
        span=_segment_span(segments, last, last + 1),
        detail=f"cannot infer artifact kind of '{segments[-1]}'",
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatcherSpec:
    """A registered matcher and the category of requests it serves."""

    name: str
    category: Category
    fn: MatcherFn
    request_type: type


_B = Category.BRANCH_NAME
_C = Category.COMMIT_MESSAGE
_P = Category.DIRECTORY_PLACEMENT

MATCHERS: dict[str, MatcherSpec] = {
    spec.name: spec
    for spec in (
        MatcherSpec("branch_issue_number", _B, match_branch_issue_number, BranchNameRequest),
        MatcherSpec("branch_title", _B, match_branch_title, BranchNameRequest),
        MatcherSpec("commit_separator", _C, match_commit_separator, CommitMessageRequest),
        MatcherSpec("commit_type", _C, match_commit_type, CommitMessageRequest),
        MatcherSpec("commit_scope", _C, match_commit_scope, CommitMessageRequest),
        MatcherSpec("commit_header", _C, match_commit_header, CommitMessageRequest),
        MatcherSpec("commit_description", _C, match_commit_description, CommitMessageRequest),
        MatcherSpec(
            "identifier_casing",
            Category.IDENTIFIER_CASING,
            match_identifier_casing,
            IdentifierRequest,
        ),
        MatcherSpec("node_suffix", Category.NODE_SUFFIX, match_node_suffix, IdentifierRequest),
        MatcherSpec("placement_root", _P, match_placement_root, PathRequest),
        MatcherSpec("placement_kind", _P, match_placement_kind, PathRequest),
        MatcherSpec("placement_extension", _P, match_placement_extension, PathRequest),
    )
}


def run_matcher(
    name: str,
    request: ValidationRequest,
    params: Mapping[str, Any],
) -> Mismatch | None:
    """Run the matcher *name* against *request*.

    Requests of a type the matcher does not handle yield ``None``.
    """
    spec = MATCHERS[name]
    if not isinstance(request, spec.request_type):
        return None
    return spec.fn(request, params)
