from __future__ import annotations

import datetime as dt
import logging
import subprocess
import threading
from pathlib import Path
from typing import Optional

from .adapter import CancelToken, VcsAdapter
from .errors import FetchCancelled, GitCommandError, UnknownReference
from .identity import raw_actor
from .models import CommitRange, RawCommit

logger = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = ("unknown revision", "bad object", "bad revision", "invalid object name")
_PRETTY = "@@@%H\t%P\t%an\t%ae\t%aI\t%cn\t%ce\t%cI\t%s"


def run_git(args: list[str], cwd: Path, timeout_s: int = 300) -> tuple[int, str, str]:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        timeout=timeout_s,
    )
    return proc.returncode, proc.stdout, proc.stderr


def get_repo_toplevel(candidate: Path) -> Optional[Path]:
    try:
        code, out, _ = run_git(["rev-parse", "--show-toplevel"], cwd=candidate)
    except (OSError, subprocess.TimeoutExpired):
        return None
    if code != 0:
        return None
    return Path(out.strip()).resolve()


def parse_iso(value: str) -> dt.datetime | None:
    s = (value or "").strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        d = dt.datetime.fromisoformat(s)
    except ValueError:
        return None
    if d.tzinfo is None:
        d = d.replace(tzinfo=dt.timezone.utc)
    return d


def _is_not_found(stderr: str) -> bool:
    s = stderr.lower()
    return any(m in s for m in _NOT_FOUND_MARKERS)


class _CommitRecord:
    def __init__(self, header: str) -> None:
        parts = header.split("\t", 8)
        parts += [""] * (9 - len(parts))
        self.sha = parts[0]
        self.parents = tuple(p for p in parts[1].split() if p)
        self.author_name, self.author_email = parts[2], parts[3]
        self.authored_iso = parts[4]
        self.committer_name, self.committer_email = parts[5], parts[6]
        self.committed_iso = parts[7]
        self.subject = parts[8]
        self.added: list[str] = []
        self.modified: list[str] = []
        self.deleted: list[str] = []
        self.insertions = 0
        self.deletions = 0

    def add_raw_line(self, line: str) -> None:
        # :100644 100644 <old> <new> M\tpath
        meta, _, path = line.partition("\t")
        status = meta.split()[-1][:1] if meta.split() else ""
        if not path:
            return
        if status == "A":
            self.added.append(path)
        elif status == "D":
            self.deleted.append(path)
        else:
            self.modified.append(path)

    def add_numstat_line(self, line: str) -> None:
        parts = line.split("\t", 2)
        if len(parts) < 3:
            return
        added_s, deleted_s = parts[0], parts[1]
        if added_s == "-" or deleted_s == "-":
            return
        try:
            self.insertions += int(added_s)
            self.deletions += int(deleted_s)
        except ValueError:
            return

    def to_raw(self) -> RawCommit:
        authored = parse_iso(self.authored_iso) or dt.datetime.fromtimestamp(0, tz=dt.timezone.utc)
        return RawCommit(
            id=self.sha,
            parents=self.parents,
            author=raw_actor(self.author_name, self.author_email),
            committer=raw_actor(self.committer_name, self.committer_email),
            authored_date=authored,
            committed_date=parse_iso(self.committed_iso),
            subject=self.subject,
            added_files=tuple(self.added),
            modified_files=tuple(self.modified),
            deleted_files=tuple(self.deleted),
            additions=self.insertions,
            deletions=self.deletions,
        )


class GitAdapter(VcsAdapter):
    """Reads history from a local repository through `git log`."""

    def __init__(self, path: Path | str, *, timeout_s: int = 300) -> None:
        self.repo = Path(path).expanduser().resolve()
        self.timeout_s = timeout_s

    @property
    def location(self) -> str:
        return str(self.repo)

    def supports_line_stats(self) -> bool:
        return True

    def resolve_ref(self, ref: str) -> str:
        code, out, _ = run_git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], cwd=self.repo, timeout_s=self.timeout_s)
        sha = out.strip()
        if code != 0 or not sha:
            raise UnknownReference(ref, self.location)
        return sha

    def fetch_range(self, rng: CommitRange, cancel: CancelToken | None = None) -> tuple[RawCommit | None, list[RawCommit]]:
        rev = rng.end if rng.from_root else f"{rng.start}..{rng.end}"
        commits, not_found = self._log([rev], cancel)
        if not_found or rng.from_root:
            return None, commits
        return self._boundary(rng), commits

    def _boundary(self, rng: CommitRange) -> RawCommit | None:
        code, _, _ = run_git(["merge-base", "--is-ancestor", rng.start, rng.end], cwd=self.repo, timeout_s=self.timeout_s)
        if code != 0:
            return None
        found, _ = self._log(["-n", "1", rng.start], None)
        return found[0] if found else None

    def _log(self, revs: list[str], cancel: CancelToken | None) -> tuple[list[RawCommit], bool]:
        cmd = [
            "git",
            "-c",
            "core.quotePath=false",
            "log",
            "--topo-order",
            "--no-renames",
            "--no-color",
            f"--pretty=format:{_PRETTY}",
            "--raw",
            "--numstat",
            *revs,
            "--",
        ]
        proc = subprocess.Popen(
            cmd,
            cwd=str(self.repo),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )

        stderr_chunks: list[str] = []
        stderr_chars = 0
        max_stderr_chars = 50_000

        def drain_stderr() -> None:
            nonlocal stderr_chars
            if proc.stderr is None:
                return
            while True:
                chunk = proc.stderr.read(8192)
                if not chunk:
                    return
                if stderr_chars >= max_stderr_chars:
                    continue
                take = chunk[: max_stderr_chars - stderr_chars]
                stderr_chunks.append(take)
                stderr_chars += len(take)

        stderr_thread = threading.Thread(target=drain_stderr, daemon=True)
        stderr_thread.start()

        commits: list[RawCommit] = []
        current: _CommitRecord | None = None
        assert proc.stdout is not None
        try:
            for raw_line in proc.stdout:
                if cancel is not None and cancel.cancelled:
                    raise FetchCancelled("git log cancelled")
                line = raw_line.rstrip("\n")
                if not line:
                    continue
                if line.startswith("@@@"):
                    if current is not None:
                        commits.append(current.to_raw())
                    current = _CommitRecord(line[3:])
                    continue
                if current is None:
                    continue
                if line.startswith(":"):
                    current.add_raw_line(line)
                else:
                    current.add_numstat_line(line)
        except FetchCancelled:
            proc.kill()
            proc.wait()
            stderr_thread.join()
            raise

        code = proc.wait()
        stderr_thread.join()
        if current is not None:
            commits.append(current.to_raw())
        stderr = "".join(stderr_chunks)
        if code != 0:
            if _is_not_found(stderr):
                logger.info("git log %s: history not found (%s)", " ".join(revs), stderr.strip()[:200])
                return commits, True
            raise GitCommandError(cmd[3:], code, stderr)
        return commits, False
