from __future__ import annotations

import dataclasses
import datetime as dt
import logging
from heapq import heapify, heappop, heappush

from .adapter import LINE_STATS, CancelToken, VcsAdapter, fetch_gap
from .builder import build_commit, build_commits
from .cache import RepositoryCache
from .models import Actor, Commit, CommitRange
from .ranges import RangeExpr, resolve_range
from .walker import Coverage, walk

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class FileStats:
    modifications: int = 0
    added_date: dt.datetime | None = None
    last_modified_date: dt.datetime | None = None
    deleted_date: dt.datetime | None = None


class Repository:
    """
    Commit history of one repository, backed by a VCS adapter.

    Every query resolves its range through the cache first and only asks the
    adapter for the pieces the cache cannot answer. The cache lives as long as
    this object and only grows.
    """

    def __init__(self, adapter: VcsAdapter, *, legacy_boundary_discard: bool = False) -> None:
        self.adapter = adapter
        self.cache = RepositoryCache()
        self.legacy_boundary_discard = legacy_boundary_discard

    @property
    def path(self) -> str:
        return self.adapter.location

    def __repr__(self) -> str:
        commits, actors = self.cache.sizes()
        return f"Repository({self.path!r}, commits={commits}, actors={actors})"

    # Range resolution

    def resolve(self, range_expr: RangeExpr | None = None, *, cancel: CancelToken | None = None) -> list[Commit]:
        """Return every commit of the range newest-first, fetching only what the cache lacks."""
        rng = resolve_range(self.adapter.default_range if range_expr is None else range_expr, self.adapter)
        if rng.start == rng.end:
            return []
        commits = self._merge(rng, cancel)
        if not rng.from_root:
            self._record_frontier(rng, commits)
        return commits

    commits = resolve

    def _merge(self, rng: CommitRange, cancel: CancelToken | None) -> list[Commit]:
        walked = walk(self.cache, rng, legacy_discard=self.legacy_boundary_discard)
        if walked.coverage is Coverage.NONE:
            return self._fetch_whole(rng, cancel)

        commits = list(walked.commits)
        if not rng.from_root and commits and commits[-1].id == rng.start:
            commits.pop()
        known = {c.id for c in commits}

        if walked.coverage is Coverage.HEAD_GAP:
            newest_id = commits[0].id if commits else rng.start
            if newest_id == rng.start:
                return self._fetch_whole(rng, cancel)
            found, head = self._fetch(CommitRange(start=newest_id, end=rng.end), cancel)
            if not found:
                logger.warning("cached commits below %s are not in the history of %s; fetching %s", newest_id[:12], rng.end[:12], rng)
                return self._fetch_whole(rng, cancel)
            commits = [c for c in head if c.id not in known] + commits
        elif walked.coverage is Coverage.TAIL_GAP:
            fetched: set[str] = set()
            for anchor in walked.tail_anchors:
                if anchor in fetched:
                    continue
                _, tail = self._fetch(CommitRange(start=rng.start, end=anchor), cancel)
                fetched.update(c.id for c in tail)
                for c in tail:
                    if c.id not in known and c.id != rng.start:
                        known.add(c.id)
                        commits.append(c)

        return newest_first(commits)

    def _record_frontier(self, rng: CommitRange, commits: list[Commit]) -> None:
        # Parents a range leaves out lie below its start.
        ids = {c.id for c in commits}
        with self.cache.lock:
            frontier = {p for c in commits for p in c.parents if p not in ids and p != rng.start}
            if frontier:
                self.cache.commits.mark_outside(rng.start, frontier)

    def _fetch(self, rng: CommitRange, cancel: CancelToken | None) -> tuple[bool, list[Commit]]:
        boundary, raw_commits = fetch_gap(self.adapter, rng, cancel)
        built = build_commits(self.cache, raw_commits)
        if boundary is None:
            return False, built
        with self.cache.lock:
            base = build_commit(self.cache, boundary)
            if built and base.id in built[-1].parents:
                self.cache.commits.link(built[-1].id, base.id)
        return True, built

    def _fetch_whole(self, rng: CommitRange, cancel: CancelToken | None) -> list[Commit]:
        _, built = self._fetch(rng, cancel)
        seen: set[str] = set()
        out: list[Commit] = []
        for c in built:
            if c.id in seen or c.id == rng.start:
                continue
            seen.add(c.id)
            out.append(c)
        return newest_first(out)

    # Actors

    def author(self, actor_id: str) -> Actor | None:
        with self.cache.lock:
            actor = self.cache.actors.get(actor_id)
        return actor if actor is not None and actor.authored else None

    def committer(self, actor_id: str) -> Actor | None:
        with self.cache.lock:
            actor = self.cache.actors.get(actor_id)
        return actor if actor is not None and actor.committed else None

    def authors(self, range_expr: RangeExpr | None = None, *, cancel: CancelToken | None = None) -> dict[str, Actor]:
        ids = {c.author_id for c in self.resolve(range_expr, cancel=cancel)}
        return {actor_id: actor for actor_id, actor in self.cache.authors.items() if actor_id in ids}

    contributors = authors

    def committers(self, range_expr: RangeExpr | None = None, *, cancel: CancelToken | None = None) -> dict[str, Actor]:
        ids = {c.committer_id for c in self.resolve(range_expr, cancel=cancel)}
        return {actor_id: actor for actor_id, actor in self.cache.committers.items() if actor_id in ids}

    collaborators = committers

    def top_authors(self, range_expr: RangeExpr | None = None, count: int = 3, *, cancel: CancelToken | None = None) -> list[Actor]:
        _check_count(count)
        authors = sorted(self.authors(range_expr, cancel=cancel).values(), key=lambda a: (-a.commit_count, a.id))
        return authors[: min(count, len(authors))]

    top_contributors = top_authors

    def significant_authors(
        self, range_expr: RangeExpr | None = None, count: int = 3, *, cancel: CancelToken | None = None
    ) -> list[Actor]:
        self.adapter.support(LINE_STATS)
        _check_count(count)
        authors = list(self.authors(range_expr, cancel=cancel).values())
        scored = sorted(((self.modifications_of(a), a) for a in authors), key=lambda t: (-t[0], t[1].id))
        return [a for _, a in scored[: min(count, len(scored))]]

    significant_contributors = significant_authors

    def modifications_of(self, actor: Actor) -> int:
        total = 0
        with self.cache.lock:
            for commit_id in actor.authored:
                commit = self.cache.commits.get(commit_id)
                if commit is not None:
                    total += commit.modifications or 0
        return total

    # Commits and files

    def significant_commits(
        self, range_expr: RangeExpr | None = None, count: int = 10, *, cancel: CancelToken | None = None
    ) -> list[Commit]:
        self.adapter.support(LINE_STATS)
        _check_count(count)
        commits = sorted(self.resolve(range_expr, cancel=cancel), key=lambda c: (-(c.modifications or 0), c.id))
        return commits[: min(count, len(commits))]

    def file_stats(self, range_expr: RangeExpr | None = None, *, cancel: CancelToken | None = None) -> dict[str, FileStats]:
        """
        Per-file history of the range: when each file was last added, modified
        and deleted, and how many commits added or modified it.
        """
        self.adapter.support(LINE_STATS)
        stats: dict[str, FileStats] = {}
        for commit in reversed(self.resolve(range_expr, cancel=cancel)):
            for path in commit.added_files or ():
                st = stats.setdefault(path, FileStats())
                st.added_date = commit.authored_date
                st.modifications += 1
            for path in commit.modified_files or ():
                st = stats.setdefault(path, FileStats())
                st.last_modified_date = commit.authored_date
                st.modifications += 1
            for path in commit.deleted_files or ():
                st = stats.setdefault(path, FileStats())
                st.deleted_date = commit.authored_date
        return stats

    def line_history(self, range_expr: RangeExpr | None = None, *, cancel: CancelToken | None = None) -> dict[str, list[int]]:
        self.adapter.support(LINE_STATS)
        history: dict[str, list[int]] = {"additions": [], "deletions": []}
        for commit in reversed(self.resolve(range_expr, cancel=cancel)):
            history["additions"].append(commit.additions or 0)
            history["deletions"].append(-(commit.deletions or 0))
        return history


def _check_count(count: int) -> None:
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")


def _order_key(commit: Commit) -> tuple[float, str]:
    return (-commit.authored_date.timestamp(), commit.id)


def newest_first(commits: list[Commit]) -> list[Commit]:
    """Children before parents; among commits ready at the same time, newer first."""
    by_id: dict[str, Commit] = {}
    for c in commits:
        by_id.setdefault(c.id, c)

    waiting = {cid: sum(1 for ch in c.children if ch in by_id) for cid, c in by_id.items()}
    heap = [(_order_key(c), cid) for cid, c in by_id.items() if waiting[cid] == 0]
    heapify(heap)
    out: list[Commit] = []
    while heap:
        _, cid = heappop(heap)
        commit = by_id[cid]
        out.append(commit)
        for parent_id in commit.parents:
            if parent_id not in waiting:
                continue
            waiting[parent_id] -= 1
            if waiting[parent_id] == 0:
                heappush(heap, (_order_key(by_id[parent_id]), parent_id))
    return out
