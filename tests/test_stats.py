from __future__ import annotations

import datetime as dt

from conftest import BASE_DATE, FakeAdapter, make_raw

from history_stats.builder import commit_from_raw
from history_stats.repository import Repository
from history_stats.stats import activity, simple_stats


def test_activity_of_no_commits() -> None:
    out = activity([])
    assert out["first_commit_date"] is None
    assert out["active_days"] == {}
    assert out["commits_per_active_day"] == 0.0
    assert out["most_active_day"] is None


def test_activity_counts_utc_days() -> None:
    plus5 = dt.timezone(dt.timedelta(hours=5))
    commits = [
        commit_from_raw(make_raw("a", day=1)),
        commit_from_raw(make_raw("b", day=1)),
        commit_from_raw(make_raw("c", day=3)),
    ]
    # 02:00 at +05:00 on Jan 3 is still Jan 2 in UTC.
    late = commit_from_raw(make_raw("d"))
    late.authored_date = dt.datetime(2025, 1, 3, 2, 0, tzinfo=plus5)
    commits.append(late)

    out = activity(commits)

    assert out["active_days"] == {"2025-01-02": 3, "2025-01-04": 1}
    assert out["most_active_day"] == "2025-01-02"
    assert out["commits_per_active_day"] == 2.0
    assert out["first_commit_date"] == BASE_DATE + dt.timedelta(days=1)
    assert out["last_commit_date"] == BASE_DATE + dt.timedelta(days=3)


def test_simple_stats(linear_adapter: FakeAdapter) -> None:
    repo = Repository(linear_adapter)

    out = simple_stats(repo, "master", top=1)

    assert out["commit_count"] == 5
    assert out["top_contributors"] == ["alice@example.com"]
    assert len(out["active_days"]) == 5
    assert out["most_active_day"] == "2025-01-02"
    assert len(linear_adapter.fetches) == 1
