from __future__ import annotations

from conftest import linear_raws, make_raw

from history_stats.builder import build_commits
from history_stats.cache import RepositoryCache
from history_stats.models import ROOT, CommitRange
from history_stats.walker import Coverage, walk


def _cache(raws) -> RepositoryCache:
    cache = RepositoryCache()
    build_commits(cache, sorted(raws, key=lambda r: r.authored_date, reverse=True))
    return cache


def _ids(result) -> list[str]:
    return [c.id for c in result.commits]


def test_uncached_endpoints_give_no_coverage() -> None:
    cache = _cache([r for r in linear_raws() if r.id in {"c1", "c2"}])
    result = walk(cache, CommitRange(start=ROOT, end="c5"))
    assert result.coverage is Coverage.NONE
    assert result.commits == ()


def test_full_history_from_root() -> None:
    cache = _cache(linear_raws())
    result = walk(cache, CommitRange(start=ROOT, end="c5"))
    assert result.coverage is Coverage.FULL
    assert _ids(result) == ["c5", "c4", "c3", "c2", "c1"]


def test_boundary_is_kept_as_oldest_entry() -> None:
    cache = _cache(linear_raws())
    result = walk(cache, CommitRange(start="c2", end="c4"))
    assert result.coverage is Coverage.FULL
    assert _ids(result) == ["c4", "c3", "c2"]
    assert result.oldest is not None and result.oldest.id == "c2"
    assert result.newest is not None and result.newest.id == "c4"


def test_missing_parent_becomes_tail_anchor() -> None:
    cache = _cache([r for r in linear_raws() if r.id in {"c3", "c4", "c5"}])
    result = walk(cache, CommitRange(start=ROOT, end="c5"))
    assert result.coverage is Coverage.TAIL_GAP
    assert result.tail_anchors == ("c2",)
    assert _ids(result) == ["c5", "c4", "c3"]


def test_uncached_end_with_cached_start_walks_up() -> None:
    cache = _cache([r for r in linear_raws() if r.id in {"c1", "c2", "c3"}])
    result = walk(cache, CommitRange(start="c1", end="c5"))
    assert result.coverage is Coverage.HEAD_GAP
    assert _ids(result) == ["c3", "c2", "c1"]


def test_walk_up_stops_at_forks() -> None:
    raws = [
        make_raw("c1", (), day=1),
        make_raw("a1", ("c1",), day=2),
        make_raw("b1", ("c1",), day=3),
    ]
    result = walk(_cache(raws), CommitRange(start="c1", end="zz"))
    assert result.coverage is Coverage.HEAD_GAP
    assert _ids(result) == ["c1"]


def test_merge_walk_visits_each_commit_once() -> None:
    raws = [
        make_raw("c1", (), day=1),
        make_raw("a1", ("c1",), day=2),
        make_raw("b1", ("c1",), day=3),
        make_raw("m", ("a1", "b1"), day=4),
    ]
    result = walk(_cache(raws), CommitRange(start=ROOT, end="m"))
    assert result.coverage is Coverage.FULL
    assert sorted(_ids(result)) == ["a1", "b1", "c1", "m"]


def test_discarding_walk_drops_frame_that_meets_boundary() -> None:
    cache = _cache(linear_raws())
    rng = CommitRange(start="c3", end="c5")

    fixed = walk(cache, rng)
    legacy = walk(cache, rng, legacy_discard=True)

    assert _ids(fixed) == ["c5", "c4", "c3"]
    assert fixed.coverage is Coverage.FULL
    assert _ids(legacy) == ["c5"]
    assert legacy.coverage is Coverage.TAIL_GAP
    assert legacy.tail_anchors == ("c5",)


def test_discarding_walk_with_direct_boundary_has_no_coverage() -> None:
    cache = _cache(linear_raws())
    result = walk(cache, CommitRange(start="c4", end="c5"), legacy_discard=True)
    assert result.coverage is Coverage.NONE


def test_discarding_walk_from_root_matches_fixed_walk() -> None:
    cache = _cache(linear_raws())
    rng = CommitRange(start=ROOT, end="c5")
    assert _ids(walk(cache, rng, legacy_discard=True)) == _ids(walk(cache, rng))


def test_discarding_walk_up_collapses_at_end() -> None:
    cache = _cache(linear_raws())
    result = walk(cache, CommitRange(start="c3", end="zz"), legacy_discard=True)
    assert result.coverage is Coverage.HEAD_GAP
    assert _ids(result) == ["c5", "c4", "c3"]


def _low_fork_cache() -> RepositoryCache:
    return _cache(
        [
            make_raw("c1", (), day=1),
            make_raw("c2", ("c1",), day=2),
            make_raw("s1", ("c1",), day=3),
            make_raw("c3", ("c2",), day=4),
            make_raw("m", ("c3", "s1"), day=5),
        ]
    )


def test_ancestors_of_start_are_not_tail_gaps() -> None:
    result = walk(_low_fork_cache(), CommitRange(start="c2", end="m"))
    assert result.coverage is Coverage.FULL
    assert result.tail_anchors == ()
    assert _ids(result) == ["m", "c3", "s1", "c2"]


def test_discarding_walk_anchors_refetch_at_frame_that_lost_the_boundary() -> None:
    result = walk(_low_fork_cache(), CommitRange(start="c2", end="m"), legacy_discard=True)
    assert _ids(result) == ["m", "s1"]
    assert result.coverage is Coverage.TAIL_GAP
    assert result.tail_anchors == ("m",)
