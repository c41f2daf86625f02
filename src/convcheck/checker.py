"""Checker orchestrator: build requests from project artifacts, validate, format results."""

from __future__ import annotations

import fnmatch
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from convcheck.config import resolve_config
from convcheck.engine.model import (
    BranchNameRequest,
    CommitMessageRequest,
    IdentifierRequest,
    PathRequest,
    Severity,
)
from convcheck.engine.validator import validate_batch
from convcheck.extract import SCENE_SUFFIXES, SCRIPT_SUFFIXES, extract_identifiers
from convcheck.infrastructure.git import tracked_files

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from convcheck.config import ProjectConfig
    from convcheck.engine.model import (
        ArtifactKind,
        Diagnostic,
        IdentifierKind,
        ValidationRequest,
        ValidationResult,
    )

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CheckTarget:
    """What was checked: a label plus an optional location in the project."""

    kind: str  # "branch" | "commit" | "identifier" | "path"
    subject: str
    file_path: str | None = None
    line_number: int | None = None

    @property
    def location(self) -> str | None:
        if self.file_path is None:
            return None
        if self.line_number is not None:
            return f"{self.file_path}:{self.line_number}"
        return self.file_path


@dataclass(frozen=True)
class CheckEntry:
    """One validated request and its result."""

    target: CheckTarget
    result: ValidationResult


@dataclass
class CheckReport:
    """Result of a check run."""

    entries: list[CheckEntry] = field(default_factory=list)
    rules_evaluated: int = 0
    skipped: int = 0
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return all(e.result.ok for e in self.entries)

    @property
    def findings(self) -> list[CheckEntry]:
        """Entries with at least one diagnostic."""
        return [e for e in self.entries if e.result.diagnostics]

    @property
    def error_count(self) -> int:
        return sum(len(e.result.errors) for e in self.entries)

    @property
    def warning_count(self) -> int:
        return sum(len(e.result.warnings) for e in self.entries)

    def exit_code(self, *, fail_on_warn: bool = False) -> int:
        """0 iff every result is ok (and, with *fail_on_warn*, warning-free)."""
        if not self.ok:
            return 1
        if fail_on_warn and self.warning_count:
            return 1
        return 0


# ---------------------------------------------------------------------------
# Running checks
# ---------------------------------------------------------------------------


def run_checks(
    config: ProjectConfig,
    items: Sequence[tuple[CheckTarget, ValidationRequest]],
    *,
    skipped: int = 0,
    max_workers: int | None = None,
) -> CheckReport:
    """Validate every request and collect the results in input order."""
    start = time.monotonic()
    results = validate_batch(
        config.ruleset, [request for _target, request in items], max_workers=max_workers
    )
    entries = [
        CheckEntry(target=target, result=result)
        for (target, _request), result in zip(items, results)
    ]
    elapsed = (time.monotonic() - start) * 1000
    return CheckReport(
        entries=entries,
        rules_evaluated=sum(1 for r in config.ruleset if r.enabled),
        skipped=skipped,
        elapsed_ms=elapsed,
    )


def check_branch(config: ProjectConfig, name: str) -> CheckReport:
    target = CheckTarget(kind="branch", subject=name)
    return run_checks(config, [(target, BranchNameRequest(raw=name))])


def check_commit(config: ProjectConfig, message: str, *, source: str | None = None) -> CheckReport:
    header = message.split("\n", 1)[0]
    target = CheckTarget(kind="commit", subject=header, file_path=source)
    return run_checks(config, [(target, CommitMessageRequest(raw=message))])


def check_identifier(config: ProjectConfig, name: str, kind: IdentifierKind) -> CheckReport:
    target = CheckTarget(kind="identifier", subject=name)
    return run_checks(config, [(target, IdentifierRequest(name=name, kind=kind))])


def is_ignored(path: str, patterns: Iterable[str]) -> bool:
    """True when *path* (or its file name) matches one of the glob *patterns*."""
    name = PurePosixPath(path).name
    return any(fnmatch.fnmatch(path, p) or fnmatch.fnmatch(name, p) for p in patterns)


def path_items(
    config: ProjectConfig,
    paths: Iterable[str],
    *,
    kind: ArtifactKind | None = None,
    apply_ignore: bool = True,
) -> tuple[list[tuple[CheckTarget, ValidationRequest]], int]:
    """Build placement requests for *paths*; returns ``(items, skipped)``."""
    items: list[tuple[CheckTarget, ValidationRequest]] = []
    skipped = 0
    for raw in paths:
        posix = raw.replace("\\", "/")
        if apply_ignore and is_ignored(posix, config.ignore):
            skipped += 1
            continue
        request = PathRequest.from_string(posix, kind=kind)
        items.append((CheckTarget(kind="path", subject=posix, file_path=posix), request))
    return items, skipped


def check_paths(
    config: ProjectConfig,
    paths: Iterable[str],
    *,
    kind: ArtifactKind | None = None,
    apply_ignore: bool = True,
) -> CheckReport:
    """Check directory placement of each path."""
    items, skipped = path_items(config, paths, kind=kind, apply_ignore=apply_ignore)
    return run_checks(config, items, skipped=skipped)


def source_items(
    config: ProjectConfig, project_root: Path, paths: Iterable[str]
) -> list[tuple[CheckTarget, ValidationRequest]]:
    """Build identifier requests from GDScript sources and scene files."""
    items: list[tuple[CheckTarget, ValidationRequest]] = []
    suffixes = SCRIPT_SUFFIXES | SCENE_SUFFIXES
    for rel in paths:
        if PurePosixPath(rel).suffix.lower() not in suffixes:
            continue
        if is_ignored(rel, config.ignore):
            continue
        try:
            text = (project_root / rel).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.warning("Cannot read file: %s", rel)
            continue
        for ident in extract_identifiers(rel, text):
            target = CheckTarget(
                kind="identifier", subject=ident.name, file_path=rel, line_number=ident.line
            )
            items.append((target, IdentifierRequest(name=ident.name, kind=ident.kind)))
    return items


def check_sources(config: ProjectConfig, project_root: Path, paths: Iterable[str]) -> CheckReport:
    """Check identifier casing and node suffixes declared in project files."""
    return run_checks(config, source_items(config, project_root, paths))


def check_project(
    project_root: Path,
    *,
    config: ProjectConfig | None = None,
    config_path: Path | None = None,
    files: Sequence[str] | None = None,
    identifiers: bool = True,
    max_workers: int | None = None,
) -> CheckReport:
    """Check placement (and optionally identifiers) of every project file.

    *files* defaults to the files git tracks under *project_root*.

    Raises
    ------
    ConfigError
        When the configuration file is present but invalid.
    GitError
        When *files* is not given and git cannot list the project files.
    """
    if config is None:
        config = resolve_config(project_root, config_path)
    if files is None:
        files = tracked_files(project_root)

    items, skipped = path_items(config, files)
    if identifiers:
        items.extend(source_items(config, project_root, files))
    logger.debug("Checking %d request(s), %d file(s) ignored", len(items), skipped)
    return run_checks(config, items, skipped=skipped, max_workers=max_workers)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def _marker(diag: Diagnostic) -> str:
    return "error" if diag.severity is Severity.ERROR else "warn"


def format_rich(report: CheckReport) -> str:
    """Format a CheckReport as human-readable text.

    Example output with findings::

        x commit: Fix(player): typo
          [error] Commit.UnknownType: Unknown commit type 'Fix': expected one of feat, ...

        1 error, 0 warnings in 1 check (12 rules, 0.0s)

    Example output without findings::

        All 3 checks passed (12 rules, 0.0s)
    """
    lines: list[str] = []
    elapsed_str = f"{report.elapsed_ms / 1000:.1f}s"
    checks = len(report.entries)
    summary_tail = f"({report.rules_evaluated} rules, {elapsed_str})"

    for entry in report.findings:
        mark = "✗" if not entry.result.ok else "!"
        header = f"{mark} {entry.target.kind}: {entry.target.subject}"
        location = entry.target.location
        if location is not None and location != entry.target.subject:
            header += f" ({location})"
        lines.append(header)
        for diag in entry.result.diagnostics:
            lines.append(f"  [{_marker(diag)}] {diag.rule_id}: {diag.message}")
        lines.append("")

    if report.findings:
        errors = report.error_count
        warnings = report.warning_count
        lines.append(
            f"{errors} error{'s' if errors != 1 else ''}, "
            f"{warnings} warning{'s' if warnings != 1 else ''} "
            f"in {checks} check{'s' if checks != 1 else ''} {summary_tail}"
        )
    else:
        lines.append(f"✓ All {checks} check{'s' if checks != 1 else ''} passed {summary_tail}")

    if report.skipped:
        lines.append(f"{report.skipped} file(s) ignored")

    return "\n".join(lines)


def format_json(report: CheckReport) -> str:
    """Format a CheckReport as structured JSON with ``results`` and ``summary``."""
    results: list[dict[str, object]] = []
    for entry in report.findings:
        results.append(
            {
                "kind": entry.target.kind,
                "subject": entry.target.subject,
                "file_path": entry.target.file_path,
                "line_number": entry.target.line_number,
                **entry.result.to_dict(),
            }
        )

    output: dict[str, object] = {
        "results": results,
        "summary": {
            "ok": report.ok,
            "checks": len(report.entries),
            "errors": report.error_count,
            "warnings": report.warning_count,
            "skipped": report.skipped,
            "rules_evaluated": report.rules_evaluated,
            "elapsed_ms": report.elapsed_ms,
        },
    }
    return json.dumps(output, indent=2)


def format_porcelain(report: CheckReport) -> str:
    """One line per diagnostic: ``severity:rule_id:file_path:line:subject:message``.

    Missing file paths and line numbers are empty strings. Returns an empty
    string when there are no diagnostics.
    """
    lines: list[str] = []
    for entry in report.findings:
        file_path = entry.target.file_path or ""
        line_number = str(entry.target.line_number) if entry.target.line_number is not None else ""
        for diag in entry.result.diagnostics:
            lines.append(
                f"{diag.severity.value}:{diag.rule_id}:{file_path}:{line_number}:"
                f"{entry.target.subject}:{diag.message}"
            )
    return "\n".join(lines)


def _escape_annotation(text: str) -> str:
    return text.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def format_github(report: CheckReport) -> str:
    """GitHub Actions workflow commands (``::error``/``::warning``) per diagnostic."""
    lines: list[str] = []
    for entry in report.findings:
        for diag in entry.result.diagnostics:
            command = "error" if diag.severity is Severity.ERROR else "warning"
            props = [f"title={_escape_annotation(diag.rule_id)}"]
            if entry.target.file_path is not None:
                props.insert(0, f"file={entry.target.file_path}")
                if entry.target.line_number is not None:
                    props.insert(1, f"line={entry.target.line_number}")
            lines.append(f"::{command} {','.join(props)}::{_escape_annotation(diag.message)}")
    return "\n".join(lines)


FORMATTERS = {
    "rich": format_rich,
    "json": format_json,
    "porcelain": format_porcelain,
    "github": format_github,
}
