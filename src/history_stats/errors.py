from __future__ import annotations


class HistoryStatsError(RuntimeError):
    pass


class UnknownReference(HistoryStatsError, LookupError):
    def __init__(self, ref: str, location: str = "") -> None:
        self.ref = ref
        self.location = location
        where = f" in {location}" if location else ""
        super().__init__(f"unknown reference{where}: {ref!r}")


class UnsupportedOperation(HistoryStatsError):
    def __init__(self, capability: str, location: str = "") -> None:
        self.capability = capability
        where = f" by {location}" if location else ""
        super().__init__(f"operation requires {capability!r}, which is not supported{where}")


class FetchCancelled(HistoryStatsError):
    pass


class GitCommandError(HistoryStatsError):
    def __init__(self, args: list[str], code: int, stderr: str) -> None:
        self.git_args = list(args)
        self.code = code
        self.stderr = stderr
        super().__init__(f"git {' '.join(args[:2])} exited {code}: {stderr.strip()[:500]}")


class RemoteError(HistoryStatsError):
    def __init__(self, message: str, status: int = 0) -> None:
        self.status = status
        super().__init__(message)
