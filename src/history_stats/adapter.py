from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod

from .errors import FetchCancelled, UnsupportedOperation
from .models import CommitRange, RawCommit

logger = logging.getLogger(__name__)

LINE_STATS = "line_stats"


class CancelToken:
    """Cooperative cancellation with an optional deadline, checked between fetch steps."""

    def __init__(self, timeout_s: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout_s if timeout_s is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise FetchCancelled("fetch cancelled")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise FetchCancelled("fetch timed out")

    def wait(self, timeout_s: float) -> bool:
        """Sleep up to `timeout_s`, waking early on cancel or at the deadline; True when cancelled."""
        if self._deadline is not None:
            timeout_s = min(timeout_s, max(0.0, self._deadline - time.monotonic()))
        self._event.wait(timeout_s)
        return self.cancelled


class VcsAdapter(ABC):
    """
    Capability interface of a commit history backend.

    Implementations resolve symbolic references and load commit ranges; they
    never touch the repository cache.
    """

    default_range = "HEAD"

    @property
    @abstractmethod
    def location(self) -> str:
        """Path or slug identifying the repository."""

    @abstractmethod
    def resolve_ref(self, ref: str) -> str:
        """Return the commit id `ref` points to; raise UnknownReference if it does not exist."""

    @abstractmethod
    def fetch_range(
        self, rng: CommitRange, cancel: CancelToken | None = None
    ) -> tuple[RawCommit | None, list[RawCommit]]:
        """
        Load the commits of `rng` newest-first.

        Returns the boundary record (the commit at `rng.start`) when the start
        was found in the end's history, or None when history ran out first.
        Not-found conditions met while fetching end the fetch; they are not
        errors.
        """

    @abstractmethod
    def supports_line_stats(self) -> bool:
        pass

    def supports(self, capability: str) -> bool:
        if capability == LINE_STATS:
            return self.supports_line_stats()
        return False

    def support(self, capability: str) -> None:
        if not self.supports(capability):
            raise UnsupportedOperation(capability, self.location)


def fetch_gap(
    adapter: VcsAdapter, rng: CommitRange, cancel: CancelToken | None = None
) -> tuple[RawCommit | None, list[RawCommit]]:
    if cancel is not None:
        cancel.raise_if_cancelled()
    logger.info("fetching %s from %s", rng, adapter.location)
    boundary, raw_commits = adapter.fetch_range(rng, cancel)
    if cancel is not None:
        cancel.raise_if_cancelled()
    logger.info(
        "fetched %d commits for %s (boundary %s)",
        len(raw_commits),
        rng,
        boundary.id[:12] if boundary is not None else "none",
    )
    return boundary, raw_commits
