"""Lock settings: defaults → YAML file → environment → CLI flags."""

import os
from dataclasses import dataclass, fields, replace

import yaml


DEFAULT_BASE_PATH = "/srv/repo-copy"
CONFIG_ENV = "REPO_LOCK_CONFIG"

# Environment variable → LockConfig field
ENV_VARS = {
    "MAX_WAIT_MINUTES": "max_wait_minutes",
    "INITIAL_SLEEP": "initial_backoff_seconds",
    "SLEEP_INCREMENT": "backoff_increment_seconds",
    "STALE_LOCK_MINUTES": "stale_threshold_minutes",
    "REPO_LOCK_BASE": "repository_base_path",
}


@dataclass
class LockConfig:
    max_wait_minutes: int = 20
    initial_backoff_seconds: int = 60
    backoff_increment_seconds: int = 30
    stale_threshold_minutes: int = 30
    repository_base_path: str = DEFAULT_BASE_PATH

    @property
    def max_wait_seconds(self) -> int:
        return self.max_wait_minutes * 60

    @property
    def stale_threshold_seconds(self) -> int:
        return self.stale_threshold_minutes * 60


def _coerce(name: str, value) -> int | str:
    """Convert a raw setting to its field type. Raises ValueError."""
    if name == "repository_base_path":
        return str(value)
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}") from None
    if number < 0:
        raise ValueError(f"{name} must not be negative, got {number}")
    return number


def _read_file(path: str) -> dict:
    """Read settings from a YAML mapping."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping of settings")

    known = {f.name for f in fields(LockConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"{path}: unknown setting(s): {', '.join(unknown)}")
    return data


def load_config(
    path: str | None = None,
    env: dict[str, str] | None = None,
    overrides: dict | None = None,
) -> LockConfig:
    """Build the effective LockConfig.

    *path* falls back to $REPO_LOCK_CONFIG. Overrides whose value is None
    are ignored so unset CLI flags don't mask lower layers.
    """
    env = os.environ if env is None else env
    raw: dict = {}

    path = path or env.get(CONFIG_ENV)
    if path:
        raw.update(_read_file(path))

    for var, name in ENV_VARS.items():
        if env.get(var):
            raw[name] = env[var]

    for name, value in (overrides or {}).items():
        if value is not None:
            raw[name] = value

    config = replace(LockConfig(), **{name: _coerce(name, value) for name, value in raw.items()})
    if config.initial_backoff_seconds == 0 and config.backoff_increment_seconds == 0:
        raise ValueError(
            "initial_backoff_seconds and backoff_increment_seconds cannot both be 0"
        )
    return config


def resolve_identity(
    job_identifier: str | None,
    build_number: str | None,
    env: dict[str, str] | None = None,
) -> tuple[str, str]:
    """Job/build from arguments, then $JOB_NAME / $BUILD_NUMBER, then literals."""
    env = os.environ if env is None else env
    job = job_identifier or env.get("JOB_NAME") or "unknown"
    build = build_number or env.get("BUILD_NUMBER") or "0"
    return job, str(build)
