"""Gitalyze CLI - store commit metadata of a repository's remote branches.

Usage:
    gitalyze
    gitalyze --repo ../myrepo --remote upstream
    gitalyze -m mongodb://db.internal:27017 -d analytics
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, BarColumn, TextColumn

from . import __version__
from .commits import repo_name_from_url, walk_history, fetch_metadata
from .git import GitRepo, GitError
from .store import CommitStore, StoreError, DEFAULT_MONGO_URI, default_db_name

console = Console()


def sync_commits(
    git: GitRepo,
    store: CommitStore,
    remote: str,
    fetch: bool = True,
    verbose: bool = False,
    on_start: Callable[[int], None] | None = None,
    on_progress: Callable[[], None] | None = None,
) -> int:
    """Walk every branch of `remote` and upsert one document per commit.

    Returns the number of commits written.
    """
    repo_name = repo_name_from_url(git.remote_url(remote))
    console.print(f"Repo: [bold]{repo_name}[/]")

    if fetch:
        console.print("Fetching remotes...", style="dim")
        git.fetch()

    branches = git.remote_branches(remote)
    console.print(f"{len(branches)} branches:")
    for branch in branches:
        console.print(f"  - {branch}", style="dim")

    commits = walk_history(git, remote, branches, repo_name)
    console.print(f"{len(commits)} commits")
    if verbose:
        for commit_hash in sorted(commits):
            console.print(f"  - {commit_hash}", style="dim")

    if on_start:
        on_start(len(commits))

    written = 0
    for record in commits.values():
        fetch_metadata(git, record)
        store.upsert(record)
        written += 1
        if on_progress:
            on_progress()
    return written


@click.command()
@click.version_option(version=__version__)
@click.option("--repo", "-p", default=".", help="Path to repository")
@click.option("--remote", "-r", default="origin", help="Git remote, e.g. origin")
@click.option("--db", "-d", default=None, envvar="GITALYZE_DB", help="Mongo database name [default: gitalyze-<UTC timestamp>]")
@click.option("--mongo", "-m", default=DEFAULT_MONGO_URI, envvar="GITALYZE_MONGO", help="Mongo connection URI")
@click.option("--no-fetch", is_flag=True, help="Skip 'git fetch --all --prune' before reading branches")
@click.option("--timeout", type=float, default=None, help="Timeout in seconds for each git command")
@click.option("--verbose", "-v", is_flag=True, help="List every commit hash found")
def cli(repo: str, remote: str, db: str | None, mongo: str, no_fetch: bool, timeout: float | None, verbose: bool):
    """Analyze your git repositories!

    Reads every branch of REMOTE in the repository at REPO and stores one
    document per commit in the 'commits' collection of a MongoDB database.
    """
    console.print(Panel.fit(
        f"[bold cyan]Gitalyze v{__version__}[/] - Commit Metadata Extractor",
        border_style="cyan",
    ))

    repo_path = Path(repo).resolve()
    if not repo_path.is_dir():
        raise click.ClickException(f"Not a directory: {repo}")

    store = CommitStore(uri=mongo, db_name=db or default_db_name())
    git = GitRepo(repo_path, timeout=timeout)

    try:
        store.connect()
        console.print(f"Database: [bold]{store.db_name}[/]", style="dim")

        with Progress(
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=console,
        ) as progress:
            task = progress.add_task("Storing commits", total=None)

            written = sync_commits(
                git,
                store,
                remote,
                fetch=not no_fetch,
                verbose=verbose,
                on_start=lambda total: progress.update(task, total=total),
                on_progress=lambda: progress.advance(task),
            )
    except (GitError, StoreError) as e:
        raise click.ClickException(str(e))
    except ValueError as e:
        # malformed dates or field counts in git's output
        raise click.ClickException(f"Unexpected git output: {e}")

    store.close()
    console.print(f"[green]Stored {written} commits in {store.db_name}.commits[/]")
    console.print("Done!")


if __name__ == "__main__":
    cli()
