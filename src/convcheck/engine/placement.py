"""Directory placement schema: which artifact kinds may live under which paths."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from convcheck.engine.model import ArtifactKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

WILDCARD = "*"

EXTENSION_KINDS: dict[str, ArtifactKind] = {
    ".gd": ArtifactKind.SCRIPT,
    ".cs": ArtifactKind.SCRIPT,
    ".tscn": ArtifactKind.SCENE,
    ".scn": ArtifactKind.SCENE,
    ".tres": ArtifactKind.RESOURCE,
    ".res": ArtifactKind.RESOURCE,
    ".png": ArtifactKind.TEXTURE,
    ".jpg": ArtifactKind.TEXTURE,
    ".jpeg": ArtifactKind.TEXTURE,
    ".svg": ArtifactKind.TEXTURE,
    ".webp": ArtifactKind.TEXTURE,
    ".ttf": ArtifactKind.FONT,
    ".otf": ArtifactKind.FONT,
    ".woff": ArtifactKind.FONT,
    ".woff2": ArtifactKind.FONT,
}


def infer_kind(segments: Sequence[str]) -> ArtifactKind | None:
    """Infer the artifact kind from the extension of the last path segment."""
    if not segments:
        return None
    suffix = PurePosixPath(segments[-1]).suffix.lower()
    return EXTENSION_KINDS.get(suffix)


# ---------------------------------------------------------------------------
# Schema tree
# ---------------------------------------------------------------------------


@dataclass
class SchemaNode:
    """One directory level of the placement schema.

    ``kinds`` is ``None`` for intermediate directories that declare nothing
    themselves; the walk then falls back to the nearest declaring ancestor.
    """

    name: str
    kinds: frozenset[ArtifactKind] | None = None
    children: dict[str, SchemaNode] = field(default_factory=dict)

    def child(self, segment: str) -> SchemaNode | None:
        """Exact child names win over the ``*`` wildcard."""
        found = self.children.get(segment)
        if found is None:
            found = self.children.get(WILDCARD)
        return found


@dataclass(frozen=True)
class PlacementMatch:
    """Outcome of walking a path through the schema."""

    root_known: bool
    depth: int  # number of leading segments matched
    allowed: frozenset[ArtifactKind]
    declared_at: tuple[str, ...]  # schema prefix that declared ``allowed``


class PlacementSchema:
    """Tree compiled from a ``path-prefix -> kinds`` mapping."""

    def __init__(self, roots: dict[str, SchemaNode], entries: dict[str, frozenset[ArtifactKind]]):
        self._roots = roots
        self._entries = entries

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[ArtifactKind | str]]) -> PlacementSchema:
        """Build a schema from ``{"entities/player": ["script", "scene"], ...}``.

        Raises ``ValueError`` for empty prefixes or unknown kind names.
        """
        roots: dict[str, SchemaNode] = {}
        entries: dict[str, frozenset[ArtifactKind]] = {}

        for prefix, raw_kinds in mapping.items():
            segments = [s for s in str(prefix).strip().strip("/").split("/") if s]
            if not segments:
                msg = f"placement prefix '{prefix}' has no path segments"
                raise ValueError(msg)

            kinds = frozenset(_coerce_kind(k, prefix) for k in raw_kinds)

            level = roots
            node: SchemaNode | None = None
            for segment in segments:
                node = level.get(segment)
                if node is None:
                    node = SchemaNode(name=segment)
                    level[segment] = node
                level = node.children
            assert node is not None
            node.kinds = kinds if node.kinds is None else node.kinds | kinds
            entries["/".join(segments)] = node.kinds

        return cls(roots, entries)

    @property
    def roots(self) -> list[str]:
        return sorted(self._roots)

    def entries(self) -> dict[str, frozenset[ArtifactKind]]:
        """Return the flattened ``prefix -> kinds`` mapping."""
        return dict(self._entries)

    def walk(self, segments: Sequence[str]) -> PlacementMatch:
        """Walk *segments* greedily from the root.

        The first segment must name a root. The walk then descends while the
        next segment matches a child; the kinds of the deepest declaring node
        visited are the allowed kinds.
        """
        if not segments:
            return PlacementMatch(root_known=False, depth=0, allowed=frozenset(), declared_at=())

        node = self._roots.get(segments[0])
        if node is None:
            node = self._roots.get(WILDCARD)
        if node is None:
            return PlacementMatch(root_known=False, depth=0, allowed=frozenset(), declared_at=())

        depth = 1
        allowed: frozenset[ArtifactKind] = frozenset()
        declared_at: tuple[str, ...] = ()
        if node.kinds is not None:
            allowed = node.kinds
            declared_at = tuple(segments[:1])

        for segment in segments[1:]:
            nxt = node.child(segment)
            if nxt is None:
                break
            node = nxt
            depth += 1
            if node.kinds is not None:
                allowed = node.kinds
                declared_at = tuple(segments[:depth])

        return PlacementMatch(
            root_known=True, depth=depth, allowed=allowed, declared_at=declared_at
        )


def _coerce_kind(raw: ArtifactKind | str, prefix: str) -> ArtifactKind:
    if isinstance(raw, ArtifactKind):
        return raw
    try:
        return ArtifactKind(str(raw).strip().lower())
    except ValueError:
        valid = sorted(k.value for k in ArtifactKind)
        msg = f"placement prefix '{prefix}': invalid kind '{raw}', must be one of {valid}"
        raise ValueError(msg) from None
