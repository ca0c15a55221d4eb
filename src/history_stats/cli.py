from __future__ import annotations

import argparse
import dataclasses
import datetime as dt
import json
import sys
from pathlib import Path

from . import __version__, open_repository
from .config import read_config
from .errors import HistoryStatsError
from .logs import setup_logging
from .models import Actor, Commit
from .repository import Repository
from .stats import simple_stats

COMMANDS = (
    "stats",
    "commits",
    "authors",
    "committers",
    "top-authors",
    "significant-authors",
    "significant-commits",
    "files",
    "lines",
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="history-stats", description="Contributor and change statistics from commit history.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, default=Path("config.json"), help="Path to config.json.")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--path", type=Path, default=None, help="Local git repository (default: current directory).")
    src.add_argument("--github", type=str, default="", help="GitHub repository as owner/project.")
    parser.add_argument(
        "--legacy-boundary-discard",
        action="store_true",
        help="Discard cached commits when a cache walk meets the range boundary partway (legacy walk behavior).",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More log output (-v info, -vv debug).")
    parser.add_argument("command", choices=COMMANDS, help="What to report.")
    parser.add_argument("range", nargs="?", default=None, help="Ref or range, e.g. master, v1.0..master (default: config default_range).")
    parser.add_argument("--count", type=int, default=None, help="Number of items for top/significant rankings.")
    return parser


def _iso(d: dt.datetime | None) -> str | None:
    return d.isoformat() if d is not None else None


def actor_to_dict(actor: Actor, repo: Repository | None = None) -> dict[str, object]:
    out: dict[str, object] = {
        "id": actor.id,
        "name": actor.name,
        "email": actor.email,
        "authored_commits": len(actor.authored),
        "committed_commits": len(actor.committed),
    }
    if repo is not None:
        out["modifications"] = repo.modifications_of(actor)
    return out


def commit_to_dict(commit: Commit) -> dict[str, object]:
    return {
        "id": commit.id,
        "parents": sorted(commit.parents),
        "author": commit.author_id,
        "committer": commit.committer_id,
        "authored_date": _iso(commit.authored_date),
        "subject": commit.subject,
        "additions": commit.additions,
        "deletions": commit.deletions,
    }


def _json_default(value: object) -> object:
    if isinstance(value, dt.datetime):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"not JSON serializable: {type(value).__name__}")


def run_command(repo: Repository, command: str, range_expr: str | None, count: int | None) -> object:
    if command == "stats":
        return simple_stats(repo, range_expr, top=5 if count is None else count)
    if command == "commits":
        return [commit_to_dict(c) for c in repo.resolve(range_expr)]
    if command == "authors":
        return [actor_to_dict(a) for a in repo.authors(range_expr).values()]
    if command == "committers":
        return [actor_to_dict(a) for a in repo.committers(range_expr).values()]
    if command == "top-authors":
        return [actor_to_dict(a) for a in repo.top_authors(range_expr, 3 if count is None else count)]
    if command == "significant-authors":
        return [actor_to_dict(a, repo) for a in repo.significant_authors(range_expr, 3 if count is None else count)]
    if command == "significant-commits":
        return [commit_to_dict(c) for c in repo.significant_commits(range_expr, 10 if count is None else count)]
    if command == "files":
        return {path: dataclasses.asdict(st) for path, st in sorted(repo.file_stats(range_expr).items())}
    if command == "lines":
        return repo.line_history(range_expr)
    raise ValueError(f"unknown command: {command!r}")


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = _build_parser().parse_args(argv)

    try:
        config = read_config(args.config)
    except (OSError, ValueError, TypeError) as e:
        print(f"error: invalid config {args.config}: {e}", file=sys.stderr)
        return 1

    level = config.log_level
    if args.verbose >= 2:
        level = "DEBUG"
    elif args.verbose == 1:
        level = "INFO"
    setup_logging(level)

    if args.legacy_boundary_discard:
        config = dataclasses.replace(config, boundary_discard=True)

    try:
        if args.github:
            repo = open_repository("github", args.github, config=config)
        else:
            repo = open_repository("git", str(args.path or Path.cwd()), config=config)
        result = run_command(repo, args.command, args.range, args.count)
    except (HistoryStatsError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, default=_json_default))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
