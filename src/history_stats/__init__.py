from __future__ import annotations

__version__ = "0.1.0"

from pathlib import Path

from .adapter import CancelToken, VcsAdapter
from .config import HistoryConfig
from .errors import FetchCancelled, GitCommandError, HistoryStatsError, RemoteError, UnknownReference, UnsupportedOperation
from .models import ROOT, Actor, Commit, CommitRange, RawActor, RawCommit
from .repository import Repository
from .stats import activity, simple_stats

__all__ = [
    "ROOT",
    "Actor",
    "CancelToken",
    "Commit",
    "CommitRange",
    "FetchCancelled",
    "GitCommandError",
    "HistoryConfig",
    "HistoryStatsError",
    "RawActor",
    "RawCommit",
    "RemoteError",
    "Repository",
    "UnknownReference",
    "UnsupportedOperation",
    "VcsAdapter",
    "activity",
    "open_repository",
    "simple_stats",
]


def open_repository(kind: str, *options: str, config: HistoryConfig | None = None) -> Repository:
    """
    Create a repository handle for a backend kind: "git" takes a filesystem
    path, "github" an "owner/project" slug (or owner and project).
    """
    cfg = config or HistoryConfig()
    k = (kind or "").strip().lower()
    adapter: VcsAdapter
    if k == "git":
        from .git import GitAdapter, get_repo_toplevel

        path = Path(options[0] if options else ".").expanduser()
        top = get_repo_toplevel(path)
        if top is None:
            raise ValueError(f"not a git repository: {path}")
        adapter = GitAdapter(top, timeout_s=max(cfg.timeout_s, 300))
    elif k == "github":
        from .github import GitHubAdapter

        if not options:
            raise ValueError("github repositories need an owner/project slug")
        adapter = GitHubAdapter(
            *options[:2],
            api_url=cfg.github_api_url,
            token=cfg.github_token,
            per_page=cfg.per_page,
            timeout_s=cfg.timeout_s,
            ca_bundle_path=cfg.ca_bundle_path,
            max_rate_limit_waits=cfg.max_rate_limit_waits,
        )
    else:
        raise ValueError(f"unknown repository kind: {kind!r} (expected 'git' or 'github')")
    adapter.default_range = cfg.default_range
    return Repository(adapter, legacy_boundary_discard=cfg.boundary_discard)
