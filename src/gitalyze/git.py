"""Git command runner - thin wrapper around the git binary.

Every query is a synchronous subprocess call. Output is trimmed and
returned as text; any failure is raised as GitError.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

DEFAULT_MAX_OUTPUT = 1024 * 1024  # bytes of stdout accepted per command

# NUL-separated fields for a single `git show -s` metadata query
METADATA_FIELDS = ("%ae", "%an", "%aI", "%ce", "%cn", "%cI", "%s", "%b")
METADATA_FORMAT = "%x00".join(METADATA_FIELDS)


class GitError(Exception):
    """A git command failed, timed out or produced too much output."""


class GitRepo:
    """Runs git commands inside a local repository."""

    def __init__(
        self,
        path: str | Path = ".",
        timeout: float | None = None,
        max_output: int = DEFAULT_MAX_OUTPUT,
    ):
        self.path = Path(path)
        self.timeout = timeout
        self.max_output = max_output

    def run(self, *args: str) -> str:
        """Run `git <args>` and return trimmed stdout."""
        cmd = ["git", *args]
        if not self.path.is_dir():
            raise GitError(f"Not a directory: {self.path}")
        try:
            result = subprocess.run(
                cmd,
                cwd=self.path,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise GitError(f"{' '.join(cmd)} timed out after {self.timeout}s")
        except FileNotFoundError:
            raise GitError(f"git executable not found (cwd: {self.path})")

        if result.returncode != 0:
            raise GitError(
                f"{' '.join(cmd)} exited with {result.returncode}: "
                f"{result.stderr.strip()[:500]}"
            )
        if len(result.stdout.encode("utf-8")) > self.max_output:
            raise GitError(
                f"{' '.join(cmd)} produced more than {self.max_output} bytes of output"
            )
        return result.stdout.strip()

    def remote_url(self, remote: str) -> str:
        return self.run("config", "--get", f"remote.{remote}.url")

    def fetch(self) -> None:
        """Refresh all remote-tracking refs, dropping deleted branches."""
        self.run("fetch", "--all", "--prune")

    def remote_branches(self, remote: str) -> list[str]:
        output = self.run("branch", "-r", "--format=%(refname)")
        return parse_branch_refs(output, remote)

    def rev_list(self, remote: str, branch: str) -> list[str]:
        """All commit hashes reachable from remote/branch, merges included."""
        output = self.run("rev-list", "--full-history", f"{remote}/{branch}")
        return [line.strip() for line in output.split("\n") if line.strip()]

    def show_metadata(self, commit_hash: str) -> list[str]:
        """Author, committer, subject and body fields of one commit.

        Returns eight trimmed strings in METADATA_FIELDS order.
        """
        output = self.run("show", "-s", f"--format={METADATA_FORMAT}", commit_hash)
        return [f.strip() for f in output.split("\x00")]

    def numstat(self, commit_hash: str) -> str:
        return self.run("show", "--format=", "--numstat", commit_hash)


def parse_branch_refs(output: str, remote: str) -> list[str]:
    """Turn `refs/remotes/<remote>/<branch>` lines into sorted branch names.

    Refs of other remotes, refs with fewer than four segments and the
    remote's symbolic HEAD are dropped. Branch names keep their slashes.
    """
    branches = []
    for line in output.split("\n"):
        parts = line.strip().split("/")
        if len(parts) < 4 or parts[2] != remote:
            continue
        name = "/".join(parts[3:])
        if name != "HEAD":
            branches.append(name)
    return sorted(branches)
