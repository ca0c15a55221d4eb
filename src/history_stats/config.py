from __future__ import annotations

import dataclasses
import json
import os
from pathlib import Path

from .github import DEFAULT_API_URL

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_config(config_path: Path) -> dict:
    if not config_path.exists():
        return {}
    data = json.loads(config_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"config must be a JSON object: {config_path}")
    return data


def save_config(config_path: Path, config: dict) -> None:
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(config, indent=2, sort_keys=True) + "\n", encoding="utf-8")


@dataclasses.dataclass(frozen=True)
class HistoryConfig:
    default_range: str = "HEAD"
    boundary_discard: bool = False
    github_api_url: str = DEFAULT_API_URL
    github_token: str = ""
    ca_bundle_path: str = ""
    per_page: int = 100
    timeout_s: int = 30
    max_rate_limit_waits: int = 3
    log_level: str = "WARNING"

    @classmethod
    def from_dict(cls, data: dict, env: dict[str, str] | None = None) -> HistoryConfig:
        env = dict(os.environ if env is None else env)
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"unknown config keys: {', '.join(unknown)}")

        values = dict(data)
        token = (env.get("GITHUB_TOKEN") or "").strip()
        if token:
            values["github_token"] = token
        level = (env.get("HISTORY_STATS_LOG_LEVEL") or "").strip()
        if level:
            values["log_level"] = level

        cfg = cls(**values)
        cfg.validate()
        return cfg

    def validate(self) -> None:
        if not str(self.default_range).strip():
            raise ValueError("default_range must not be empty")
        if not isinstance(self.boundary_discard, bool):
            raise ValueError(f"boundary_discard must be true or false, got {self.boundary_discard!r}")
        if not isinstance(self.per_page, int) or not 1 <= self.per_page <= 100:
            raise ValueError(f"per_page must be an integer between 1 and 100, got {self.per_page!r}")
        if not isinstance(self.timeout_s, int) or self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be a positive integer, got {self.timeout_s!r}")
        if not isinstance(self.max_rate_limit_waits, int) or self.max_rate_limit_waits < 0:
            raise ValueError(f"max_rate_limit_waits must be a non-negative integer, got {self.max_rate_limit_waits!r}")
        if str(self.log_level).upper() not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {self.log_level!r}")


def read_config(config_path: Path | None, env: dict[str, str] | None = None) -> HistoryConfig:
    data = load_config(config_path) if config_path is not None else {}
    return HistoryConfig.from_dict(data, env=env)
