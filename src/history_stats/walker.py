from __future__ import annotations

import dataclasses
import enum
import logging

from .cache import CommitCache, RepositoryCache
from .models import Commit, CommitRange

logger = logging.getLogger(__name__)


class Coverage(enum.Enum):
    FULL = "full"
    TAIL_GAP = "tail_gap"  # older commits down to the start are missing
    HEAD_GAP = "head_gap"  # newer commits up to the end are missing
    NONE = "none"


@dataclasses.dataclass(frozen=True)
class WalkResult:
    commits: tuple[Commit, ...]  # newest-first; the boundary commit is the oldest entry when reached
    coverage: Coverage
    tail_anchors: tuple[str, ...] = ()

    @property
    def newest(self) -> Commit | None:
        return self.commits[0] if self.commits else None

    @property
    def oldest(self) -> Commit | None:
        return self.commits[-1] if self.commits else None


NO_COVERAGE = WalkResult(commits=(), coverage=Coverage.NONE)


def walk(cache: RepositoryCache, rng: CommitRange, *, legacy_discard: bool = False) -> WalkResult:
    """
    Collect as much of `rng` as the commit cache can answer without fetching.

    Walks parent edges down from a cached end, or child edges up from a cached
    start. With `legacy_discard` a boundary met partway through a walk throws
    away what the current frame had gathered, so the merger re-fetches that
    part; otherwise the walk stops at the boundary and keeps it as the oldest
    entry.
    """
    with cache.lock:
        commits = cache.commits
        if rng.end in commits:
            if legacy_discard:
                result = _walk_down_discarding(commits, rng)
            else:
                result = _walk_down(commits, rng)
        elif not rng.from_root and rng.start in commits:
            if legacy_discard:
                result = _walk_up_discarding(commits, rng)
            else:
                result = _walk_up(commits, rng)
        else:
            result = NO_COVERAGE
    logger.debug("cache walk %s: %s, %d commits", rng, result.coverage.value, len(result.commits))
    return result


def _ordered(ids: set[str]) -> list[str]:
    return sorted(ids)


def _walk_down(commits: CommitCache, rng: CommitRange) -> WalkResult:
    out: list[Commit] = []
    missing: list[str] = []
    boundary: Commit | None = None
    seen: set[str] = set()
    excluded = set() if rng.from_root else commits.excluded_below(rng.start)

    stack = [rng.end]
    while stack:
        commit_id = stack.pop()
        if commit_id in seen:
            continue
        seen.add(commit_id)
        commit = commits[commit_id]
        out.append(commit)
        # Reversed so the smallest id is popped first.
        for parent_id in reversed(_ordered(commit.parents)):
            if parent_id == rng.start:
                boundary = commits.get(parent_id)
                continue
            if parent_id in seen or parent_id in excluded:
                continue
            if parent_id in commits:
                stack.append(parent_id)
            elif parent_id not in missing:
                missing.append(parent_id)

    if boundary is not None:
        out.append(boundary)
    coverage = Coverage.TAIL_GAP if missing else Coverage.FULL
    return WalkResult(commits=tuple(out), coverage=coverage, tail_anchors=tuple(missing))


def _walk_up(commits: CommitCache, rng: CommitRange) -> WalkResult:
    start = commits[rng.start]
    out: list[Commit] = [start]
    seen = {start.id}
    cur = start
    # Only unambiguous chains: a fork could lead away from the requested end.
    while len(cur.children) == 1:
        (child_id,) = cur.children
        if child_id in seen or child_id not in commits:
            break
        seen.add(child_id)
        cur = commits[child_id]
        out.insert(0, cur)
    return WalkResult(commits=tuple(out), coverage=Coverage.HEAD_GAP)


@dataclasses.dataclass
class _Frame:
    commit: Commit
    pending: list[str]
    gathered: list[Commit]


def _walk_down_discarding(commits: CommitCache, rng: CommitRange) -> WalkResult:
    seen = {rng.end}
    root = commits[rng.end]
    excluded = set() if rng.from_root else commits.excluded_below(rng.start)
    frames = [_Frame(root, _ordered(root.parents), [root])]
    result: list[Commit] = []
    # Commits to re-fetch from: each lost part of the range lies below one of them.
    anchors: list[str] = []

    while frames:
        frame = frames[-1]
        if not frame.pending:
            frames.pop()
            if frames:
                frames[-1].gathered.extend(frame.gathered)
            else:
                result = frame.gathered
            continue
        parent_id = frame.pending.pop(0)
        if parent_id == rng.start:
            # Boundary hit: this frame contributes nothing, whatever it gathered.
            frames.pop()
            if frames and frames[-1].commit.id not in anchors:
                anchors.append(frames[-1].commit.id)
            continue
        if parent_id in seen or parent_id in excluded:
            continue
        if parent_id not in commits:
            if frame.commit.id not in anchors:
                anchors.append(frame.commit.id)
            continue
        seen.add(parent_id)
        parent = commits[parent_id]
        frames.append(_Frame(parent, _ordered(parent.parents), [parent]))

    if not result:
        return NO_COVERAGE
    coverage = Coverage.TAIL_GAP if anchors else Coverage.FULL
    return WalkResult(commits=tuple(result), coverage=coverage, tail_anchors=tuple(anchors))


def _walk_up_discarding(commits: CommitCache, rng: CommitRange) -> WalkResult:
    seen = {rng.start}
    root = commits[rng.start]
    frames = [_Frame(root, _ordered(root.children), [root])]
    result: list[Commit] = []

    while frames:
        frame = frames[-1]
        if not frame.pending:
            frames.pop()
            if frames:
                frames[-1].gathered[:0] = frame.gathered
            else:
                result = frame.gathered
            continue
        child_id = frame.pending.pop(0)
        if child_id == rng.end:
            # End hit: this frame collapses to the end commit alone.
            frames.pop()
            gathered = [commits[child_id]]
            if frames:
                frames[-1].gathered[:0] = gathered
            else:
                result = gathered
            continue
        if child_id in seen or child_id not in commits:
            continue
        seen.add(child_id)
        child = commits[child_id]
        frames.append(_Frame(child, _ordered(child.children), [child]))

    if not result:
        return NO_COVERAGE
    coverage = Coverage.FULL if result[0].id == rng.end else Coverage.HEAD_GAP
    return WalkResult(commits=tuple(result), coverage=coverage)
