"""Infrastructure: git access feeding the engine."""

from convcheck.infrastructure.git import (
    GitError,
    current_branch,
    read_commit_message,
    strip_commit_message,
    tracked_files,
)

__all__ = [
    "GitError",
    "current_branch",
    "read_commit_message",
    "strip_commit_message",
    "tracked_files",
]
