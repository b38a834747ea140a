"""Commit records - history walking, metadata parsing and classification.

Builds one CommitRecord per distinct commit hash reachable from the
remote's branches and fills it from git's plain-text output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .git import GitRepo

PR_PATTERN = re.compile(r"^\s*(Merged\s+)?PR\s+[0-9]+:", re.IGNORECASE | re.MULTILINE)
MERGE_PATTERN = re.compile(r"Merge", re.IGNORECASE)
COUNT_PATTERN = re.compile(r"^[0-9]+$")


@dataclass
class Identity:
    """Author or committer of a commit."""

    email: str
    name: str
    date: datetime

    def to_dict(self) -> dict:
        return {"email": self.email, "name": self.name, "date": self.date}


@dataclass
class FileStat:
    """Line changes of one file. Counts are None for binary files."""

    path: str
    insertions: int | None
    deletions: int | None

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "insertions": self.insertions,
            "deletions": self.deletions,
        }


@dataclass
class ChangeTotals:
    insertions: int = 0
    deletions: int = 0

    def to_dict(self) -> dict:
        return {"insertions": self.insertions, "deletions": self.deletions}


@dataclass
class CommitRecord:
    """Everything stored about one commit of one remote."""

    repo: str
    remote: str
    hash: str
    branches: list[str] = field(default_factory=list)

    # Filled by fetch_metadata
    author: Identity | None = None
    committer: Identity | None = None
    subject: str = ""
    body: str = ""
    is_pr: bool = False
    is_merge: bool = False
    files: list[FileStat] = field(default_factory=list)
    totals: ChangeTotals = field(default_factory=ChangeTotals)

    @property
    def id(self) -> str:
        return commit_id(self.repo, self.remote, self.hash)

    def to_document(self) -> dict[str, Any]:
        """MongoDB document with stable field names."""
        return {
            "_id": self.id,
            "repo": self.repo,
            "remote": self.remote,
            "hash": self.hash,
            "branches": list(self.branches),
            "author": self.author.to_dict() if self.author else None,
            "committer": self.committer.to_dict() if self.committer else None,
            "subject": self.subject,
            "body": self.body,
            "isPR": self.is_pr,
            "isMerge": self.is_merge,
            "stats": {
                "file": [f.to_dict() for f in self.files],
                "total": self.totals.to_dict(),
            },
        }


def commit_id(repo: str, remote: str, commit_hash: str) -> str:
    return f"{repo}-{remote}-{commit_hash}"


def repo_name_from_url(url: str) -> str:
    """Last path segment of a remote URL, e.g. `repo.git`."""
    return url.split("/")[-1]


# --- History walking ---


def add_branch_commits(
    commits: dict[str, CommitRecord],
    branch: str,
    hashes: list[str],
    repo: str,
    remote: str,
) -> dict[str, CommitRecord]:
    """Fold one branch's reachable hashes into the commit map.

    New hashes get a fresh record; known ones gain the branch name.
    """
    for commit_hash in hashes:
        record = commits.get(commit_hash)
        if record is None:
            commits[commit_hash] = CommitRecord(
                repo=repo, remote=remote, hash=commit_hash, branches=[branch]
            )
        else:
            record.branches.append(branch)
    return commits


def walk_history(
    git: GitRepo,
    remote: str,
    branches: list[str],
    repo: str,
) -> dict[str, CommitRecord]:
    """Map every commit reachable from the given remote branches."""
    commits: dict[str, CommitRecord] = {}
    for branch in branches:
        add_branch_commits(commits, branch, git.rev_list(remote, branch), repo, remote)
    return commits


# --- Metadata parsing ---


def parse_count(text: str) -> int | None:
    """Numstat line count, or None for git's binary-file marker ("-")."""
    text = text.strip()
    if COUNT_PATTERN.match(text):
        return int(text)
    return None


def parse_numstat(output: str) -> list[FileStat]:
    """Parse `<insertions>\\t<deletions>\\t<path>` lines."""
    files = []
    for line in output.split("\n"):
        line = line.strip()
        if not line:
            continue
        parts = [p.strip() for p in line.split("\t")]
        files.append(FileStat(
            path=parts[2] if len(parts) > 2 else "",
            insertions=parse_count(parts[0]),
            deletions=parse_count(parts[1]) if len(parts) > 1 else None,
        ))
    return files


def sum_stats(files: list[FileStat]) -> ChangeTotals:
    return ChangeTotals(
        insertions=sum(f.insertions or 0 for f in files),
        deletions=sum(f.deletions or 0 for f in files),
    )


def parse_date(text: str) -> datetime:
    """Parse git's ISO 8601 timestamp into a timezone-aware datetime."""
    return datetime.fromisoformat(text.strip())


def classify_subject(subject: str) -> tuple[bool, bool]:
    """Return (is_pr, is_merge). A PR merge is never also a plain merge."""
    is_pr = bool(PR_PATTERN.search(subject))
    is_merge = not is_pr and bool(MERGE_PATTERN.search(subject))
    return is_pr, is_merge


def fetch_metadata(git: GitRepo, record: CommitRecord) -> CommitRecord:
    """Fill identity, message, classification and stats of a record."""
    (
        author_email, author_name, author_date,
        committer_email, committer_name, committer_date,
        subject, body,
    ) = git.show_metadata(record.hash)

    record.author = Identity(author_email, author_name, parse_date(author_date))
    record.committer = Identity(committer_email, committer_name, parse_date(committer_date))
    record.subject = subject
    record.body = body
    record.is_pr, record.is_merge = classify_subject(subject)

    record.files = parse_numstat(git.numstat(record.hash))
    record.totals = sum_stats(record.files)
    return record
