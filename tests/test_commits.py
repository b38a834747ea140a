"""Tests for commit record building and parsing."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from gitalyze.commits import (
    CommitRecord,
    FileStat,
    ChangeTotals,
    add_branch_commits,
    classify_subject,
    commit_id,
    fetch_metadata,
    parse_count,
    parse_date,
    parse_numstat,
    repo_name_from_url,
    sum_stats,
    walk_history,
)
from gitalyze.git import GitRepo, GitError


@pytest.fixture
def mock_git():
    """GitRepo double with two branches sharing the commit `base`."""
    git = MagicMock(spec=GitRepo)
    history = {
        "main": ["m2", "base"],
        "dev": ["d1", "base"],
    }
    git.rev_list.side_effect = lambda remote, branch: history[branch]
    git.show_metadata.return_value = [
        "ann@example.com", "Ann", "2024-01-02T03:04:05+01:00",
        "cid@example.com", "Cid", "2024-01-03T00:00:00+00:00",
        "Merged PR 7: cleanup", "Squashed work.",
    ]
    git.numstat.return_value = "3\t0\tfoo.txt\n-\t-\tbinary.bin\n0\t5\tbar.txt\n"
    return git


class TestClassifySubject:
    @pytest.mark.parametrize(
        "subject, expected",
        [
            ("PR 42: fix bug", (True, False)),
            ("Merged PR 7: cleanup", (True, False)),
            ("  merged pr 7: lower case", (True, False)),
            ("Merge branch 'dev'", (False, True)),
            ("Auto-merged changes", (False, True)),
            ("Add feature X", (False, False)),
            ("PR42: missing space", (False, False)),
            ("PR 42 no colon", (False, False)),
            ("PR \u0664\u0662: arabic-indic digits", (False, False)),
        ],
    )
    def test_flags(self, subject, expected):
        assert classify_subject(subject) == expected

    def test_mutually_exclusive(self):
        is_pr, is_merge = classify_subject("Merged PR 12: Merge dev into main")
        assert is_pr and not is_merge


class TestNumstat:
    def test_parse_with_binary(self):
        files = parse_numstat("3\t0\tfoo.txt\n-\t-\tbinary.bin\n0\t5\tbar.txt")
        assert files == [
            FileStat("foo.txt", 3, 0),
            FileStat("binary.bin", None, None),
            FileStat("bar.txt", 0, 5),
        ]
        assert sum_stats(files) == ChangeTotals(insertions=3, deletions=5)

    def test_blank_lines_skipped(self):
        assert parse_numstat("\n\n1\t1\ta.py\n\n") == [FileStat("a.py", 1, 1)]

    def test_empty(self):
        assert parse_numstat("") == []
        assert sum_stats([]) == ChangeTotals(0, 0)

    def test_path_with_spaces(self):
        assert parse_numstat("2\t1\tdocs/my file.md") == [FileStat("docs/my file.md", 2, 1)]

    @pytest.mark.parametrize(
        "text, expected",
        [("0", 0), ("17", 17), (" 4 ", 4), ("-", None), ("", None), ("1a", None), ("\u0664", None)],
    )
    def test_parse_count(self, text, expected):
        assert parse_count(text) == expected


class TestHistoryWalk:
    def test_new_and_existing_hashes(self):
        commits = {}
        add_branch_commits(commits, "main", ["a", "b"], "repo", "origin")
        add_branch_commits(commits, "dev", ["c", "b"], "repo", "origin")
        assert set(commits) == {"a", "b", "c"}
        assert commits["b"].branches == ["main", "dev"]
        assert commits["a"].branches == ["main"]
        assert commits["c"].branches == ["dev"]
        assert commits["b"].repo == "repo"
        assert commits["b"].remote == "origin"

    def test_branch_order_only_changes_list_order(self):
        forward = {}
        add_branch_commits(forward, "b1", ["x", "shared"], "r", "o")
        add_branch_commits(forward, "b2", ["y", "shared"], "r", "o")
        backward = {}
        add_branch_commits(backward, "b2", ["y", "shared"], "r", "o")
        add_branch_commits(backward, "b1", ["x", "shared"], "r", "o")

        assert forward.keys() == backward.keys()
        assert set(forward["shared"].branches) == set(backward["shared"].branches) == {"b1", "b2"}
        assert forward["shared"].branches == ["b1", "b2"]
        assert backward["shared"].branches == ["b2", "b1"]

    def test_walk_history(self, mock_git):
        commits = walk_history(mock_git, "origin", ["dev", "main"], "repo.git")
        assert list(commits) == ["d1", "base", "m2"]
        assert commits["base"].branches == ["dev", "main"]
        assert all(c.branches for c in commits.values())

    def test_walk_history_no_branches(self, mock_git):
        assert walk_history(mock_git, "origin", [], "repo.git") == {}


class TestFetchMetadata:
    def test_fills_record(self, mock_git):
        record = CommitRecord(repo="repo.git", remote="origin", hash="base", branches=["main"])
        fetch_metadata(mock_git, record)

        assert record.author.email == "ann@example.com"
        assert record.author.name == "Ann"
        assert record.author.date == datetime(2024, 1, 2, 2, 4, 5, tzinfo=timezone.utc)
        assert record.committer.name == "Cid"
        assert record.committer.date.tzinfo is not None
        assert record.subject == "Merged PR 7: cleanup"
        assert record.body == "Squashed work."
        assert record.is_pr is True
        assert record.is_merge is False
        assert len(record.files) == 3
        assert record.totals == ChangeTotals(3, 5)
        mock_git.show_metadata.assert_called_once_with("base")
        mock_git.numstat.assert_called_once_with("base")

    def test_to_document(self, mock_git):
        record = fetch_metadata(
            mock_git, CommitRecord(repo="repo.git", remote="origin", hash="base", branches=["main"])
        )
        doc = record.to_document()
        assert doc["_id"] == "repo.git-origin-base"
        assert doc["branches"] == ["main"]
        assert doc["isPR"] is True
        assert doc["isMerge"] is False
        assert doc["author"]["email"] == "ann@example.com"
        assert doc["stats"]["file"][1] == {"path": "binary.bin", "insertions": None, "deletions": None}
        assert doc["stats"]["total"] == {"insertions": 3, "deletions": 5}
        assert set(doc) == {
            "_id", "repo", "remote", "hash", "branches", "author", "committer",
            "subject", "body", "isPR", "isMerge", "stats",
        }

    def test_git_failure_propagates(self, mock_git):
        mock_git.numstat.side_effect = GitError("boom")
        with pytest.raises(GitError):
            fetch_metadata(mock_git, CommitRecord(repo="r", remote="o", hash="base"))


class TestHelpers:
    def test_commit_id_is_stable(self):
        assert commit_id("repo", "origin", "abc") == "repo-origin-abc"
        assert CommitRecord("repo", "origin", "abc").id == commit_id("repo", "origin", "abc")

    @pytest.mark.parametrize(
        "url, name",
        [
            ("https://github.com/acme/widgets.git", "widgets.git"),
            ("git@github.com:acme/widgets", "widgets"),
            ("/srv/git/origin.git", "origin.git"),
        ],
    )
    def test_repo_name_from_url(self, url, name):
        assert repo_name_from_url(url) == name

    def test_parse_date(self):
        date = parse_date("2024-05-06T07:08:09-02:00")
        assert date.utcoffset() == timedelta(hours=-2)
        assert date.astimezone(timezone.utc).hour == 9
