"""Extract declared identifiers from GDScript sources and node names from scenes.

Extraction is line-based regex matching, not parsing: it finds declarations
at the start of a line and ignores everything else.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath

from convcheck.engine.model import IdentifierKind

SCRIPT_SUFFIXES: frozenset[str] = frozenset({".gd"})
SCENE_SUFFIXES: frozenset[str] = frozenset({".tscn"})

_ANNOTATIONS = r"(?:@\w+(?:\([^)]*\))?\s+)*"

_GDSCRIPT_PATTERNS: tuple[tuple[re.Pattern[str], IdentifierKind], ...] = (
    (re.compile(rf"^\s*{_ANNOTATIONS}(?:static\s+)?var\s+(\w+)"), IdentifierKind.VARIABLE),
    (re.compile(r"^\s*const\s+(\w+)"), IdentifierKind.CONSTANT),
    (re.compile(rf"^\s*{_ANNOTATIONS}(?:static\s+)?func\s+(\w+)"), IdentifierKind.FUNCTION),
    (re.compile(r"^\s*signal\s+(\w+)"), IdentifierKind.SIGNAL),
    (re.compile(r"^\s*class_name\s+(\w+)"), IdentifierKind.CLASS_NAME),
    (re.compile(r"^\s*class\s+(\w+)"), IdentifierKind.CLASS_NAME),
)

_NODE_HEADER = re.compile(r"^\[node\s+(?P<attrs>.*)\]\s*$")
_NODE_ATTR = re.compile(r'(\w+)=("(?:[^"\\]|\\.)*"|\S+)')


@dataclass(frozen=True)
class DeclaredIdentifier:
    """An identifier found in a file, with its 1-based line number."""

    name: str
    kind: IdentifierKind
    line: int


def extract_gdscript_identifiers(text: str) -> list[DeclaredIdentifier]:
    """Find ``var``/``const``/``func``/``signal``/``class_name``/``class`` declarations."""
    found: list[DeclaredIdentifier] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.lstrip()
        if not stripped or stripped.startswith("#"):
            continue
        for pattern, kind in _GDSCRIPT_PATTERNS:
            m = pattern.match(line)
            if m:
                found.append(DeclaredIdentifier(name=m.group(1), kind=kind, line=lineno))
                break
    return found


def extract_scene_node_names(text: str) -> list[DeclaredIdentifier]:
    """Find node names in a ``.tscn`` file.

    The scene root (no ``parent``) and instanced sub-scenes (``instance=``)
    are skipped: they are named after their scene, not their node type.
    """
    found: list[DeclaredIdentifier] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        m = _NODE_HEADER.match(line.strip())
        if m is None:
            continue
        attrs = {key: value.strip('"') for key, value in _NODE_ATTR.findall(m.group("attrs"))}
        name = attrs.get("name")
        if not name or "parent" not in attrs or "instance" in attrs:
            continue
        found.append(DeclaredIdentifier(name=name, kind=IdentifierKind.NODE_NAME, line=lineno))
    return found


def extract_identifiers(path: str, text: str) -> list[DeclaredIdentifier]:
    """Dispatch on the file extension; unknown extensions yield nothing."""
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in SCRIPT_SUFFIXES:
        return extract_gdscript_identifiers(text)
    if suffix in SCENE_SUFFIXES:
        return extract_scene_node_names(text)
    return []
