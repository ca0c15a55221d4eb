from __future__ import annotations

import json
import logging
import os
import re
import ssl
import time
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from pathlib import Path

import certifi

from . import __version__
from .adapter import CancelToken, VcsAdapter
from .errors import RemoteError, UnknownReference
from .git import parse_iso
from .identity import raw_actor
from .models import CommitRange, RawCommit

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
_SHA_RE = re.compile(r"[0-9a-f]{40}")
_NOT_FOUND_CODES = (404, 409, 422)


class _NotFound(Exception):
    pass


class GitHubAdapter(VcsAdapter):
    """
    Reads history of a GitHub repository through the REST API.

    The commits listing carries no per-file data, so line statistics are not
    available from this backend.
    """

    def __init__(
        self,
        user: str,
        project: str | None = None,
        *,
        api_url: str = DEFAULT_API_URL,
        token: str = "",
        per_page: int = 100,
        timeout_s: int = 30,
        ca_bundle_path: str = "",
        max_rate_limit_waits: int = 3,
        max_wait_s: int = 900,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if project is None and "/" in user:
            user, project = user.split("/", 1)
        user = (user or "").strip()
        project = (project or "").strip()
        if not user or not project:
            raise ValueError(f"GitHub repository must be given as owner/project, got: {user!r}/{project!r}")
        if not 1 <= per_page <= 100:
            raise ValueError(f"per_page must be between 1 and 100, got {per_page}")
        self.user = user
        self.project = project
        self.api_url = api_url.strip().rstrip("/") or DEFAULT_API_URL
        self.token = token.strip()
        self.per_page = per_page
        self.timeout_s = timeout_s
        self.ca_bundle_path = ca_bundle_path
        self.max_rate_limit_waits = max_rate_limit_waits
        self.max_wait_s = max_wait_s
        self._sleep = sleep

    @property
    def location(self) -> str:
        return f"{self.user}/{self.project}"

    def supports_line_stats(self) -> bool:
        return False

    def resolve_ref(self, ref: str) -> str:
        if _SHA_RE.fullmatch(ref):
            return ref
        try:
            data = self._get_json(f"/repos/{self.location}/commits/{urllib.parse.quote(ref, safe='')}")
        except _NotFound:
            raise UnknownReference(ref, self.location) from None
        sha = str((data or {}).get("sha", "") if isinstance(data, dict) else "")
        if not sha:
            raise UnknownReference(ref, self.location)
        return sha

    def fetch_range(self, rng: CommitRange, cancel: CancelToken | None = None) -> tuple[RawCommit | None, list[RawCommit]]:
        boundary: RawCommit | None = None
        commits: list[RawCommit] = []
        page = 1
        while True:
            if cancel is not None:
                cancel.raise_if_cancelled()
            query = urllib.parse.urlencode({"sha": rng.end, "per_page": self.per_page, "page": page})
            try:
                items = self._get_json(f"/repos/{self.location}/commits?{query}", cancel)
            except _NotFound:
                break
            if not isinstance(items, list) or not items:
                break
            ids = [str(item.get("sha", "")) for item in items]
            if not rng.from_root and rng.start in ids:
                idx = ids.index(rng.start)
                commits.extend(commit_from_json(item) for item in items[:idx])
                boundary = commit_from_json(items[idx])
                break
            commits.extend(commit_from_json(item) for item in items)
            if len(items) < self.per_page:
                break
            page += 1
        return boundary, commits

    def _get_json(self, path: str, cancel: CancelToken | None = None) -> object:
        url = self.api_url + path
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": f"history-stats/{__version__}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        ctx = _ssl_context(ca_bundle_path=self.ca_bundle_path)

        waits = 0
        while True:
            req = urllib.request.Request(url, headers=headers, method="GET")
            try:
                with urllib.request.urlopen(req, timeout=self.timeout_s, context=ctx) as resp:
                    body = resp.read().decode("utf-8", errors="replace")
                    return json.loads(body) if body.strip() else None
            except urllib.error.HTTPError as e:
                payload = ""
                try:
                    payload = e.read().decode("utf-8", errors="replace")
                except OSError:
                    payload = ""
                code = int(getattr(e, "code", 0) or 0)
                if code in _NOT_FOUND_CODES:
                    raise _NotFound(url) from e
                wait_s = _rate_limit_wait(code, e.headers, now=time.time())
                if wait_s is None:
                    raise RemoteError(f"GET {url} failed: HTTP {code}: {payload[:500]}", status=code) from e
                waits += 1
                if waits > self.max_rate_limit_waits:
                    raise RemoteError(f"GET {url} failed: rate limit still exceeded after {self.max_rate_limit_waits} waits", status=code) from e
                wait_s = min(wait_s, float(self.max_wait_s))
                logger.warning("GitHub rate limit exceeded; waiting %.0fs (%d/%d)", wait_s, waits, self.max_rate_limit_waits)
                if cancel is None:
                    self._sleep(wait_s)
                else:
                    cancel.wait(wait_s)
                    cancel.raise_if_cancelled()
            except urllib.error.URLError as e:
                msg = f"GET {url} failed: {e}"
                if _is_cert_verify_error(e):
                    msg = msg + "\nHint: HTTPS certificate verification failed; set `ca_bundle_path` in config.json."
                raise RemoteError(msg) from e


def commit_from_json(item: dict) -> RawCommit:
    commit = item.get("commit") or {}
    author = commit.get("author") or {}
    committer = commit.get("committer") or {}
    author_login = str((item.get("author") or {}).get("login", "") or "")
    committer_login = str((item.get("committer") or {}).get("login", "") or "")
    message = str(commit.get("message", "") or "")
    authored = parse_iso(str(author.get("date", "") or ""))
    if authored is None:
        raise RemoteError(f"commit {item.get('sha')!r} has no authored date")
    return RawCommit(
        id=str(item.get("sha", "")),
        parents=tuple(str(p.get("sha", "")) for p in (item.get("parents") or []) if p.get("sha")),
        author=raw_actor(str(author.get("name", "") or ""), str(author.get("email", "") or ""), author_login),
        committer=raw_actor(str(committer.get("name", "") or ""), str(committer.get("email", "") or ""), committer_login),
        authored_date=authored,
        committed_date=parse_iso(str(committer.get("date", "") or "")),
        subject=message.split("\n", 1)[0],
    )


def _rate_limit_wait(code: int, headers: object, *, now: float) -> float | None:
    if code not in (403, 429) or headers is None:
        return None
    get = getattr(headers, "get", None)
    if get is None:
        return None
    retry_after = str(get("Retry-After", "") or "").strip()
    if retry_after.isdigit():
        return max(1.0, float(retry_after))
    if str(get("X-RateLimit-Remaining", "") or "").strip() != "0":
        return None
    reset = str(get("X-RateLimit-Reset", "") or "").strip()
    if not reset.isdigit():
        return 60.0
    return max(1.0, float(reset) - now)


def _ssl_context(*, ca_bundle_path: str) -> ssl.SSLContext:
    cafile, capath = _resolve_ca_paths(ca_bundle_path)
    if cafile or capath:
        return ssl.create_default_context(cafile=cafile, capath=capath)
    return ssl.create_default_context()


def _resolve_ca_paths(explicit: str) -> tuple[str | None, str | None]:
    p = (explicit or "").strip()
    if p:
        path = Path(p).expanduser()
        if path.is_dir():
            return None, str(path)
        return str(path), None

    for k in ("SSL_CERT_FILE", "REQUESTS_CA_BUNDLE", "CURL_CA_BUNDLE"):
        v = (os.environ.get(k) or "").strip()
        if not v:
            continue
        path = Path(v).expanduser()
        if path.is_dir():
            return None, str(path)
        return str(path), None

    cafile = certifi.where()
    if cafile and Path(cafile).exists():
        return cafile, None
    return None, None


def _is_cert_verify_error(e: urllib.error.URLError) -> bool:
    reason = getattr(e, "reason", None)
    if isinstance(reason, ssl.SSLCertVerificationError):
        return True
    s = str(e)
    return "CERTIFICATE_VERIFY_FAILED" in s or "certificate verify failed" in s.lower()
