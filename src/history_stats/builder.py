from __future__ import annotations

import logging
from collections.abc import Iterable

from .cache import RepositoryCache
from .models import Commit, RawCommit

logger = logging.getLogger(__name__)


def commit_from_raw(raw: RawCommit) -> Commit:
    return Commit(
        id=raw.id,
        author_id=raw.author.id,
        committer_id=raw.committer.id,
        authored_date=raw.authored_date,
        committed_date=raw.committed_date,
        subject=raw.subject,
        added_files=raw.added_files,
        modified_files=raw.modified_files,
        deleted_files=raw.deleted_files,
        additions=raw.additions,
        deletions=raw.deletions,
    )


def build_commit(cache: RepositoryCache, raw: RawCommit) -> Commit:
    with cache.lock:
        commit = cache.commits.insert(commit_from_raw(raw), raw.parents)
        cache.actors.observe_author(raw.author, commit.id)
        cache.actors.observe_committer(raw.committer, commit.id)
        return commit


def build_commits(cache: RepositoryCache, raw_commits: Iterable[RawCommit]) -> list[Commit]:
    """
    Materialize newest-first raw records into cached commits.

    The previously built (newer) commit becomes the child of the current one
    when it lists it as a parent; edges to commits cached earlier are wired by
    the commit cache. Already cached ids resolve to the cached instance.
    """
    built: list[Commit] = []
    with cache.lock:
        previous: RawCommit | None = None
        for raw in raw_commits:
            commit = build_commit(cache, raw)
            if previous is not None and raw.id in previous.parents:
                cache.commits.link(previous.id, commit.id)
            built.append(commit)
            previous = raw
        logger.debug("built %d commits (cache now holds %d)", len(built), len(cache.commits))
    return built
