"""Timestamped output + GitHub Actions annotations."""

import os
import sys
from datetime import datetime


def _timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _is_github_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS") == "true"


def info(msg: str) -> None:
    print(f"[{_timestamp()}] INFO: {msg}", flush=True)


def banner(title: str) -> None:
    rule = "=" * 40
    info(rule)
    info(title)
    info(rule)


def detail(msg: str, err: bool = False) -> None:
    """Untimestamped, indented line (lock.info contents and the like)."""
    print(f"  {msg}", file=sys.stderr if err else sys.stdout, flush=True)


def warn(msg: str) -> None:
    if _is_github_actions():
        print(f"::warning::{msg}", flush=True)
    print(f"[{_timestamp()}] WARN: {msg}", file=sys.stderr, flush=True)


def error(msg: str) -> None:
    if _is_github_actions():
        print(f"::error::{msg}", flush=True)
    print(f"[{_timestamp()}] ERROR: {msg}", file=sys.stderr, flush=True)
