from __future__ import annotations

import datetime as dt
from collections import Counter
from typing import TYPE_CHECKING

from .models import Commit

if TYPE_CHECKING:
    from .ranges import RangeExpr
    from .repository import Repository


def activity(commits: list[Commit]) -> dict[str, object]:
    """
    Calendar activity of a set of commits, by authored date (UTC days).

    Keys: first_commit_date, last_commit_date, active_days (ISO day -> commits),
    commits_per_active_day, most_active_day.
    """
    if not commits:
        return {
            "first_commit_date": None,
            "last_commit_date": None,
            "active_days": {},
            "commits_per_active_day": 0.0,
            "most_active_day": None,
        }

    dates = [c.authored_date for c in commits]
    days: Counter[str] = Counter(_utc_day(d) for d in dates)
    most_active_day, _ = sorted(days.items(), key=lambda kv: (-kv[1], kv[0]))[0]
    return {
        "first_commit_date": min(dates),
        "last_commit_date": max(dates),
        "active_days": dict(sorted(days.items())),
        "commits_per_active_day": round(len(commits) / len(days), 2),
        "most_active_day": most_active_day,
    }


def _utc_day(d: dt.datetime) -> str:
    if d.tzinfo is None:
        d = d.replace(tzinfo=dt.timezone.utc)
    return d.astimezone(dt.timezone.utc).date().isoformat()


def simple_stats(repo: Repository, range_expr: RangeExpr | None = None, *, top: int = 5) -> dict[str, object]:
    commits = repo.resolve(range_expr)
    return {
        "commit_count": len(commits),
        "top_contributors": [a.id for a in repo.top_authors(range_expr, top)],
        **activity(commits),
    }
