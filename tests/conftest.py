from __future__ import annotations

import datetime as dt
import os
import subprocess
from pathlib import Path

import pytest

from history_stats.adapter import CancelToken, VcsAdapter
from history_stats.errors import UnknownReference
from history_stats.identity import raw_actor
from history_stats.models import CommitRange, RawCommit

BASE_DATE = dt.datetime(2025, 1, 1, tzinfo=dt.timezone.utc)


def make_raw(
    sha: str,
    parents: tuple[str, ...] = (),
    *,
    author: str = "alice",
    committer: str | None = None,
    day: int = 0,
    additions: int | None = None,
    deletions: int | None = None,
    added: tuple[str, ...] | None = None,
    modified: tuple[str, ...] | None = None,
    deleted: tuple[str, ...] | None = None,
) -> RawCommit:
    committer = committer or author
    return RawCommit(
        id=sha,
        parents=tuple(parents),
        author=raw_actor(author.title(), f"{author}@example.com"),
        committer=raw_actor(committer.title(), f"{committer}@example.com"),
        authored_date=BASE_DATE + dt.timedelta(days=day),
        subject=f"commit {sha}",
        added_files=added,
        modified_files=modified,
        deleted_files=deleted,
        additions=additions,
        deletions=deletions,
    )


class FakeAdapter(VcsAdapter):
    """In-memory backend that pages like the GitHub listing and records every fetch."""

    def __init__(self, raws: list[RawCommit], refs: dict[str, str] | None = None, *, line_stats: bool = True) -> None:
        self.raws = {r.id: r for r in raws}
        self.refs = dict(refs or {})
        self.line_stats = line_stats
        self.fetches: list[CommitRange] = []
        self.fail_with: Exception | None = None

    @property
    def location(self) -> str:
        return "fake"

    def supports_line_stats(self) -> bool:
        return self.line_stats

    def resolve_ref(self, ref: str) -> str:
        if ref in self.refs:
            return self.refs[ref]
        if ref in self.raws:
            return ref
        raise UnknownReference(ref, self.location)

    def history(self, end: str) -> list[RawCommit]:
        seen: set[str] = set()
        stack = [end]
        while stack:
            sha = stack.pop()
            if sha in seen or sha not in self.raws:
                continue
            seen.add(sha)
            stack.extend(self.raws[sha].parents)
        return sorted((self.raws[s] for s in seen), key=lambda r: (r.authored_date, r.id), reverse=True)

    def fetch_range(self, rng: CommitRange, cancel: CancelToken | None = None) -> tuple[RawCommit | None, list[RawCommit]]:
        self.fetches.append(rng)
        if cancel is not None:
            cancel.raise_if_cancelled()
        if self.fail_with is not None:
            raise self.fail_with
        listing = self.history(rng.end)
        ids = [r.id for r in listing]
        if not rng.from_root and rng.start in ids:
            idx = ids.index(rng.start)
            return listing[idx], listing[:idx]
        return None, listing


def linear_raws() -> list[RawCommit]:
    """c1 <- c2 <- c3 <- c4 <- c5; alice wrote c1, c2, c4 and bob c3, c5."""
    return [
        make_raw("c1", (), author="alice", day=1, additions=10, deletions=0, added=("README", "a.py"), modified=(), deleted=()),
        make_raw("c2", ("c1",), author="alice", day=2, additions=5, deletions=1, added=(), modified=("a.py",), deleted=()),
        make_raw("c3", ("c2",), author="bob", day=3, additions=40, deletions=2, added=("b.py",), modified=("a.py",), deleted=()),
        make_raw("c4", ("c3",), author="alice", day=4, additions=1, deletions=1, added=(), modified=("README",), deleted=()),
        make_raw("c5", ("c4",), author="bob", day=5, additions=0, deletions=30, added=(), modified=(), deleted=("b.py",)),
    ]


@pytest.fixture
def linear_adapter() -> FakeAdapter:
    return FakeAdapter(linear_raws(), refs={"master": "c5", "HEAD": "c5", "v1": "c3"})


def _run(cmd: list[str], *, cwd: Path, env: dict[str, str] | None = None) -> str:
    proc = subprocess.run(cmd, cwd=str(cwd), env=env, check=True, capture_output=True, text=True)
    return proc.stdout


def _commit(repo: Path, message: str, *, who: str, day: int) -> str:
    env = os.environ.copy()
    date = (BASE_DATE + dt.timedelta(days=day)).strftime("%Y-%m-%dT%H:%M:%SZ")
    env["GIT_AUTHOR_NAME"] = who.title()
    env["GIT_AUTHOR_EMAIL"] = f"{who}@example.com"
    env["GIT_COMMITTER_NAME"] = who.title()
    env["GIT_COMMITTER_EMAIL"] = f"{who}@example.com"
    env["GIT_AUTHOR_DATE"] = date
    env["GIT_COMMITTER_DATE"] = date
    _run(["git", "add", "-A"], cwd=repo)
    _run(["git", "commit", "-q", "-m", message], cwd=repo, env=env)
    return _run(["git", "rev-parse", "HEAD"], cwd=repo).strip()


@pytest.fixture
def git_repo(tmp_path: Path) -> tuple[Path, dict[str, str]]:
    """Three commits on main: add a.txt and README, grow a.txt and add b.txt (tag v1), delete b.txt."""
    repo = tmp_path / "repo"
    repo.mkdir()
    _run(["git", "init", "-q"], cwd=repo)
    _run(["git", "symbolic-ref", "HEAD", "refs/heads/main"], cwd=repo)
    _run(["git", "config", "user.name", "Test User"], cwd=repo)
    _run(["git", "config", "user.email", "test@example.com"], cwd=repo)
    _run(["git", "config", "commit.gpgsign", "false"], cwd=repo)

    shas: dict[str, str] = {}
    (repo / "a.txt").write_text("a\n", encoding="utf-8")
    (repo / "README").write_text("r\n", encoding="utf-8")
    shas["c1"] = _commit(repo, "init", who="alice", day=1)
    (repo / "a.txt").write_text("a\nx\ny\n", encoding="utf-8")
    (repo / "b.txt").write_text("b\n", encoding="utf-8")
    shas["c2"] = _commit(repo, "grow", who="bob", day=2)
    _run(["git", "tag", "v1"], cwd=repo)
    (repo / "b.txt").unlink()
    shas["c3"] = _commit(repo, "drop b", who="alice", day=3)
    return repo, shas
