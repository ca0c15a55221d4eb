from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Iterator

from .models import Actor, Commit, RawActor


class ActorCache:
    """One Actor per identity; membership sets grow with every observation."""

    def __init__(self) -> None:
        self._actors: dict[str, Actor] = {}

    def __contains__(self, actor_id: object) -> bool:
        return actor_id in self._actors

    def __len__(self) -> int:
        return len(self._actors)

    def __iter__(self) -> Iterator[Actor]:
        return iter(self._actors.values())

    def get(self, actor_id: str) -> Actor | None:
        return self._actors.get(actor_id)

    def observe(self, raw: RawActor) -> Actor:
        actor = self._actors.get(raw.id)
        if actor is None:
            actor = Actor(id=raw.id, name=raw.name, email=raw.email)
            self._actors[raw.id] = actor
            return actor
        if not actor.name and raw.name:
            actor.name = raw.name
        if not actor.email and raw.email:
            actor.email = raw.email
        return actor

    def observe_author(self, raw: RawActor, commit_id: str) -> Actor:
        actor = self.observe(raw)
        actor.authored.add(commit_id)
        return actor

    def observe_committer(self, raw: RawActor, commit_id: str) -> Actor:
        actor = self.observe(raw)
        actor.committed.add(commit_id)
        return actor

    def authors(self) -> dict[str, Actor]:
        return {a.id: a for a in self._actors.values() if a.authored}

    def committers(self) -> dict[str, Actor]:
        return {a.id: a for a in self._actors.values() if a.committed}


class CommitCache:
    """
    Partial materialization of the commit DAG.

    `parents` always holds every parent id the backend reported, cached or not.
    `children` only holds cached commits: a commit whose parent is not cached
    yet leaves a pending entry so the edge is completed when the parent shows
    up later.
    """

    def __init__(self) -> None:
        self._commits: dict[str, Commit] = {}
        self._pending_children: dict[str, set[str]] = defaultdict(set)
        # start id -> ids a resolved range with that exclusive start left out
        self._outside: dict[str, set[str]] = defaultdict(set)

    def __contains__(self, commit_id: object) -> bool:
        return commit_id in self._commits

    def __len__(self) -> int:
        return len(self._commits)

    def __getitem__(self, commit_id: str) -> Commit:
        return self._commits[commit_id]

    def __iter__(self) -> Iterator[Commit]:
        return iter(self._commits.values())

    def get(self, commit_id: str) -> Commit | None:
        return self._commits.get(commit_id)

    def ids(self) -> set[str]:
        return set(self._commits)

    def insert(self, commit: Commit, parent_ids: tuple[str, ...] | set[str]) -> Commit:
        """Insert `commit` (or merge it into the cached instance) and wire its edges."""
        cur = self._commits.get(commit.id)
        if cur is None:
            cur = commit
            self._commits[commit.id] = cur
            for child_id in self._pending_children.pop(commit.id, set()):
                if child_id in self._commits:
                    cur.children.add(child_id)
        else:
            _fill_missing_stats(cur, commit)

        for parent_id in parent_ids:
            cur.parents.add(parent_id)
            parent = self._commits.get(parent_id)
            if parent is None:
                self._pending_children[parent_id].add(cur.id)
                continue
            parent.children.add(cur.id)
        return cur

    def link(self, child_id: str, parent_id: str) -> bool:
        child = self._commits.get(child_id)
        parent = self._commits.get(parent_id)
        if child is None or parent is None:
            return False
        child.parents.add(parent_id)
        parent.children.add(child_id)
        pending = self._pending_children.get(parent_id)
        if pending is not None:
            pending.discard(child_id)
        return True

    def ancestors(self, commit_id: str) -> set[str]:
        """Known ancestors of `commit_id`, itself included; uncached parent ids count too."""
        seen: set[str] = set()
        stack = [commit_id]
        while stack:
            cid = stack.pop()
            if cid in seen:
                continue
            seen.add(cid)
            commit = self._commits.get(cid)
            if commit is not None:
                stack.extend(commit.parents)
        return seen

    def mark_outside(self, start: str, ids: set[str]) -> None:
        self._outside[start].update(ids)

    def excluded_below(self, start: str) -> set[str]:
        """Ids that never belong to a range whose exclusive start is `start`."""
        return self.ancestors(start) | self._outside.get(start, set())


def _fill_missing_stats(dst: Commit, src: Commit) -> None:
    if not dst.subject and src.subject:
        dst.subject = src.subject
    if dst.committed_date is None:
        dst.committed_date = src.committed_date
    if dst.added_files is None:
        dst.added_files = src.added_files
    if dst.modified_files is None:
        dst.modified_files = src.modified_files
    if dst.deleted_files is None:
        dst.deleted_files = src.deleted_files
    if dst.additions is None:
        dst.additions = src.additions
    if dst.deletions is None:
        dst.deletions = src.deletions


class RepositoryCache:
    """Commit and actor caches of one repository handle, guarded by one lock."""

    def __init__(self) -> None:
        self.commits = CommitCache()
        self.actors = ActorCache()
        self.lock = threading.RLock()

    @property
    def authors(self) -> dict[str, Actor]:
        with self.lock:
            return self.actors.authors()

    @property
    def committers(self) -> dict[str, Actor]:
        with self.lock:
            return self.actors.committers()

    def sizes(self) -> tuple[int, int]:
        with self.lock:
            return len(self.commits), len(self.actors)
