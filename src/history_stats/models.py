from __future__ import annotations

import dataclasses
import datetime as dt

# Exclusive start meaning "from the beginning of history". Backend ids are never empty.
ROOT = ""


@dataclasses.dataclass(frozen=True)
class CommitRange:
    start: str  # exclusive, ROOT for the whole history
    end: str  # inclusive

    @property
    def from_root(self) -> bool:
        return self.start == ROOT

    def __str__(self) -> str:
        return f"{self.start}..{self.end}"


@dataclasses.dataclass(frozen=True)
class RawActor:
    id: str
    name: str = ""
    email: str = ""


@dataclasses.dataclass(frozen=True)
class RawCommit:
    """Backend record as handed over by an adapter; opaque beyond these fields."""

    id: str
    parents: tuple[str, ...]
    author: RawActor
    committer: RawActor
    authored_date: dt.datetime
    committed_date: dt.datetime | None = None
    subject: str = ""
    added_files: tuple[str, ...] | None = None
    modified_files: tuple[str, ...] | None = None
    deleted_files: tuple[str, ...] | None = None
    additions: int | None = None
    deletions: int | None = None


@dataclasses.dataclass(eq=False)
class Actor:
    id: str
    name: str = ""
    email: str = ""
    authored: set[str] = dataclasses.field(default_factory=set)
    committed: set[str] = dataclasses.field(default_factory=set)

    @property
    def commit_count(self) -> int:
        return len(self.authored)


@dataclasses.dataclass(eq=False)
class Commit:
    id: str
    author_id: str
    committer_id: str
    authored_date: dt.datetime
    committed_date: dt.datetime | None = None
    subject: str = ""
    parents: set[str] = dataclasses.field(default_factory=set)
    children: set[str] = dataclasses.field(default_factory=set)
    added_files: tuple[str, ...] | None = None
    modified_files: tuple[str, ...] | None = None
    deleted_files: tuple[str, ...] | None = None
    additions: int | None = None
    deletions: int | None = None

    @property
    def has_line_stats(self) -> bool:
        return self.additions is not None and self.deletions is not None

    @property
    def modifications(self) -> int | None:
        if not self.has_line_stats:
            return None
        return self.additions + self.deletions

    def __repr__(self) -> str:
        return f"Commit({self.id[:12]!r}, parents={len(self.parents)}, children={len(self.children)})"
