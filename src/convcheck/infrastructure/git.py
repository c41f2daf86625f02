"""Git collaborators: current branch, commit message files, tracked files."""

from __future__ import annotations

import logging
import subprocess
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

SCISSORS_LINE = "# ------------------------ >8 ------------------------"
_GIT_TIMEOUT = 30


class GitError(RuntimeError):
    """Raised when a git command cannot be run or fails."""


class DetachedHeadError(GitError):
    """Raised when HEAD points at a commit rather than a branch."""


def _git(args: list[str], project_root: Path) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            ["git", *args],  # noqa: S607
            cwd=str(project_root),
            capture_output=True,
            text=True,
            timeout=_GIT_TIMEOUT,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as exc:
        logger.debug("git %s failed: %s", " ".join(args), exc)
        msg = f"cannot run git: {exc}"
        raise GitError(msg) from exc


def _failure(args: list[str], result: subprocess.CompletedProcess[str]) -> GitError:
    stderr = result.stderr.strip()
    logger.debug("git %s exited with %d: %s", " ".join(args), result.returncode, stderr)
    msg = f"git {' '.join(args)} failed: {stderr or 'exit code ' + str(result.returncode)}"
    return GitError(msg)


def _run_git(args: list[str], project_root: Path) -> str:
    result = _git(args, project_root)
    if result.returncode != 0:
        raise _failure(args, result)
    return result.stdout


def current_branch(project_root: Path) -> str:
    """Name of the checked-out branch, including an unborn one in a fresh repo.

    Raises ``DetachedHeadError`` on a detached HEAD and ``GitError`` outside
    a repository.
    """
    args = ["symbolic-ref", "--short", "-q", "HEAD"]
    result = _git(args, project_root)
    # -q: a detached HEAD exits 1 without a message
    if result.returncode == 1 and not result.stderr.strip():
        msg = "HEAD is detached; no branch name to check"
        raise DetachedHeadError(msg)
    if result.returncode != 0:
        raise _failure(args, result)
    name = result.stdout.strip()
    if not name:
        msg = "HEAD is detached; no branch name to check"
        raise DetachedHeadError(msg)
    return name


def strip_commit_message(text: str) -> str:
    """Drop git comment lines and everything below the scissors line."""
    lines: list[str] = []
    for line in text.splitlines():
        if line == SCISSORS_LINE:
            break
        if line.startswith("#"):
            continue
        lines.append(line)
    # Leading blank lines never form the header.
    while lines and not lines[0].strip():
        lines.pop(0)
    return "\n".join(lines).rstrip()


def read_commit_message(path: Path) -> str:
    """Read a commit message file as passed to a ``commit-msg`` hook."""
    return strip_commit_message(path.read_text(encoding="utf-8"))


def tracked_files(project_root: Path) -> list[str]:
    """Paths (POSIX, relative to the repository root) tracked or staged in git."""
    output = _run_git(
        ["ls-files", "-z", "--cached", "--others", "--exclude-standard"], project_root
    )
    return sorted({p for p in output.split("\0") if p})
