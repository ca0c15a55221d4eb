from __future__ import annotations

from typing import TYPE_CHECKING

from .models import ROOT, CommitRange

if TYPE_CHECKING:
    from .adapter import VcsAdapter

RangeExpr = str | CommitRange | tuple[str, str]


def parse_range(expr: RangeExpr) -> tuple[str, str]:
    """
    Split a range expression into its (exclusive start, inclusive end) names.

    "master" means everything reachable from master, "a..b" everything
    reachable from b but not through a, "..b" is the same as "b".
    """
    if isinstance(expr, CommitRange):
        return expr.start, expr.end
    if isinstance(expr, tuple):
        if len(expr) != 2:
            raise ValueError(f"Invalid range: {expr!r} (expected a (start, end) pair)")
        start, end = (str(p or "").strip() for p in expr)
    else:
        s = str(expr or "").strip()
        if "..." in s:
            raise ValueError(f"Invalid range: {expr!r} (symmetric differences are not supported)")
        if ".." in s:
            start, end = (p.strip() for p in s.split("..", 1))
        else:
            start, end = ROOT, s
    if not end:
        raise ValueError(f"Invalid range: {expr!r} (missing end reference)")
    return start or ROOT, end


def resolve_range(expr: RangeExpr, adapter: VcsAdapter) -> CommitRange:
    start, end = parse_range(expr)
    if start != ROOT:
        start = adapter.resolve_ref(start)
    return CommitRange(start=start, end=adapter.resolve_ref(end))
