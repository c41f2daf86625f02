"""convcheck CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from convcheck import __version__
from convcheck.engine.model import ArtifactKind, IdentifierKind

if TYPE_CHECKING:
    from convcheck.checker import CheckReport
    from convcheck.config import ProjectConfig

_FORMATS = ["rich", "json", "porcelain", "github"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _project_root(ctx: click.Context) -> Path:
    project: Path | None = ctx.obj.get("project")
    return project or Path.cwd()


def _load_config(ctx: click.Context) -> ProjectConfig:
    """Resolve configuration or exit with code 2."""
    from convcheck.config import ConfigError, resolve_config

    try:
        return resolve_config(_project_root(ctx), ctx.obj.get("config"))
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)


def _emit(report: CheckReport, fmt: str | None, *, fail_on_warn: bool) -> None:
    """Print *report* and exit with its status code."""
    from convcheck.checker import FORMATTERS

    # Resolve output format: explicit flag > TTY detection.
    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    output = FORMATTERS[fmt](report)
    if output:
        click.echo(output)
    sys.exit(report.exit_code(fail_on_warn=fail_on_warn))


def _format_option(fn):  # type: ignore[no-untyped-def]
    fn = click.option(
        "--fail-on-warn",
        is_flag=True,
        default=False,
        help="Exit 1 on warnings as well as errors.",
    )(fn)
    return click.option(
        "--format",
        "fmt",
        type=click.Choice(_FORMATS),
        default=None,
        help="Output format (default: rich if TTY, porcelain if piped).",
    )(fn)


# ---------------------------------------------------------------------------
# Group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="convcheck")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output (debug logging).")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file (default: .convcheck.yml in the project root).",
)
@click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)
@click.pass_context
def main(
    ctx: click.Context, *, verbose: bool, config_path: Path | None, project: Path | None
) -> None:
    """convcheck - naming and placement conventions checker."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = config_path
    ctx.obj["project"] = project


# ---------------------------------------------------------------------------
# Single-artifact checks
# ---------------------------------------------------------------------------


@main.command()
@click.argument("name", required=False)
@click.option(
    "--allow-detached",
    is_flag=True,
    default=False,
    help="Pass when HEAD is detached (rebase, bisect) instead of failing.",
)
@_format_option
@click.pass_context
def branch(
    ctx: click.Context,
    name: str | None,
    *,
    allow_detached: bool,
    fmt: str | None,
    fail_on_warn: bool,
) -> None:
    """Check a branch name (default: the current git branch)."""
    from convcheck.checker import check_branch
    from convcheck.infrastructure.git import DetachedHeadError, GitError, current_branch

    config = _load_config(ctx)
    if name is None:
        try:
            name = current_branch(_project_root(ctx))
        except DetachedHeadError as exc:
            if not allow_detached:
                click.echo(f"Error: {exc}", err=True)
                sys.exit(2)
            click.echo("HEAD is detached; skipping branch check.", err=True)
            return
        except GitError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(2)

    _emit(check_branch(config, name), fmt, fail_on_warn=fail_on_warn)


@main.command()
@click.argument("message", required=False)
@click.option(
    "--file",
    "-F",
    "message_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read the message from a file (as given to a commit-msg hook).",
)
@_format_option
@click.pass_context
def commit(
    ctx: click.Context,
    message: str | None,
    *,
    message_file: Path | None,
    fmt: str | None,
    fail_on_warn: bool,
) -> None:
    """Check a commit message header against the commit convention."""
    from convcheck.checker import check_commit
    from convcheck.infrastructure.git import read_commit_message

    if message is None and message_file is None:
        click.echo("Error: provide a MESSAGE or --file.", err=True)
        sys.exit(2)

    config = _load_config(ctx)
    source: str | None = None
    if message_file is not None:
        message = read_commit_message(message_file)
        source = str(message_file)

    assert message is not None
    _emit(check_commit(config, message, source=source), fmt, fail_on_warn=fail_on_warn)


@main.command()
@click.argument("names", nargs=-1, required=True)
@click.option(
    "--kind",
    "-k",
    type=click.Choice([k.value for k in IdentifierKind]),
    required=True,
    help="Declared kind of the identifier(s).",
)
@_format_option
@click.pass_context
def identifier(
    ctx: click.Context,
    names: tuple[str, ...],
    *,
    kind: str,
    fmt: str | None,
    fail_on_warn: bool,
) -> None:
    """Check identifier casing (and node suffixes for node_name)."""
    from convcheck.checker import CheckTarget, run_checks
    from convcheck.engine.model import IdentifierRequest

    config = _load_config(ctx)
    ident_kind = IdentifierKind(kind)
    items = [
        (CheckTarget(kind="identifier", subject=name), IdentifierRequest(name, ident_kind))
        for name in names
    ]
    _emit(run_checks(config, items), fmt, fail_on_warn=fail_on_warn)


@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.option(
    "--kind",
    "-k",
    type=click.Choice([k.value for k in ArtifactKind]),
    default=None,
    help="Artifact kind (default: inferred from the file extension).",
)
@click.option("--no-ignore", is_flag=True, default=False, help="Check ignored paths too.")
@_format_option
@click.pass_context
def path(
    ctx: click.Context,
    paths: tuple[str, ...],
    *,
    kind: str | None,
    no_ignore: bool,
    fmt: str | None,
    fail_on_warn: bool,
) -> None:
    """Check where files are placed in the project tree."""
    from convcheck.checker import check_paths

    config = _load_config(ctx)
    artifact_kind = ArtifactKind(kind) if kind is not None else None
    report = check_paths(config, paths, kind=artifact_kind, apply_ignore=not no_ignore)
    _emit(report, fmt, fail_on_warn=fail_on_warn)


# ---------------------------------------------------------------------------
# Project-wide check
# ---------------------------------------------------------------------------


@main.command()
@click.option(
    "--no-identifiers",
    is_flag=True,
    default=False,
    help="Only check placement; skip identifiers in scripts and scenes.",
)
@click.option(
    "--stdin",
    "from_stdin",
    is_flag=True,
    default=False,
    help="Read the file list from stdin instead of git.",
)
@_format_option
@click.pass_context
def tree(
    ctx: click.Context,
    *,
    no_identifiers: bool,
    from_stdin: bool,
    fmt: str | None,
    fail_on_warn: bool,
) -> None:
    """Check every project file: placement, identifiers and node names.

    Exit codes: 0 = clean, 1 = violations, 2 = configuration or git error.
    """
    from convcheck.checker import check_project
    from convcheck.infrastructure.git import GitError

    config = _load_config(ctx)
    files: list[str] | None = None
    if from_stdin:
        stream = click.get_text_stream("stdin")
        files = [line.strip() for line in stream if line.strip()]

    try:
        report = check_project(
            _project_root(ctx),
            config=config,
            files=files,
            identifiers=not no_identifiers,
        )
    except GitError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    _emit(report, fmt, fail_on_warn=fail_on_warn)


# ---------------------------------------------------------------------------
# Rule listing
# ---------------------------------------------------------------------------


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def rules(ctx: click.Context, *, as_json: bool) -> None:
    """List the active rule set in registration order."""
    config = _load_config(ctx)

    if as_json:
        data = [
            {
                "id": r.id,
                "category": r.category.value,
                "severity": r.severity.value,
                "enabled": r.enabled,
                "matcher": r.matcher,
                "description": r.description,
            }
            for r in config.ruleset
        ]
        click.echo(json.dumps(data, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    console = Console()
    source = str(config.source) if config.source is not None else "built-in defaults"
    table = Table(title=f"Rules ({source})")
    table.add_column("id", style="cyan")
    table.add_column("category")
    table.add_column("severity")
    table.add_column("enabled")
    table.add_column("description", style="dim")
    for r in config.ruleset:
        severity_style = "red" if r.severity.value == "error" else "yellow"
        table.add_row(
            r.id,
            r.category.value,
            f"[{severity_style}]{r.severity.value}[/]",
            "yes" if r.enabled else "[dim]no[/]",
            r.description,
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------

_HOOK_MARKER = "# commit-msg hook managed by convcheck"

_HOOK_TEMPLATE = """\
#!/bin/sh
{marker}
convcheck commit --format rich --file "$1" || exit 1
"""

_HOOK_BRANCH_LINE = "convcheck branch --format rich --allow-detached || exit 1\n"


@main.command("install-hooks")
@click.option("--remove", is_flag=True, help="Remove the commit-msg hook.")
@click.option(
    "--no-branch",
    is_flag=True,
    default=False,
    help="Do not check the branch name on commit.",
)
@click.pass_context
def install_hooks(ctx: click.Context, *, remove: bool, no_branch: bool) -> None:
    """Install or remove the convcheck commit-msg hook."""
    import stat

    project_root = _project_root(ctx)
    hooks_dir = project_root / ".git" / "hooks"

    if not hooks_dir.exists():
        click.echo("Error: .git/hooks not found. Is this a git repository?", err=True)
        sys.exit(1)

    hook_path = hooks_dir / "commit-msg"

    if remove:
        if hook_path.exists() and _HOOK_MARKER in hook_path.read_text(encoding="utf-8"):
            hook_path.unlink()
            click.echo("Removed commit-msg hook.")
        else:
            click.echo("No convcheck commit-msg hook to remove.")
        return

    if hook_path.exists() and _HOOK_MARKER not in hook_path.read_text(encoding="utf-8"):
        click.echo("Error: a commit-msg hook not managed by convcheck already exists.", err=True)
        sys.exit(1)

    content = _HOOK_TEMPLATE.format(marker=_HOOK_MARKER)
    if not no_branch:
        content += _HOOK_BRANCH_LINE
    hook_path.write_text(content, encoding="utf-8")
    hook_path.chmod(hook_path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    click.echo("Installed commit-msg hook.")
