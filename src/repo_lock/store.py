"""Lock directory + lock.info metadata record."""

import os
import shutil
import socket
import tempfile
from dataclasses import dataclass
from datetime import datetime


LOCK_DIR = ".jenkins-publish-lock"
LOCK_INFO = "lock.info"

_FIELDS = ("job_identifier", "build_number", "hostname", "pid", "timestamp", "human_time")


@dataclass
class LockInfo:
    job_identifier: str
    build_number: str
    hostname: str
    pid: str
    timestamp: int | None
    human_time: str

    @classmethod
    def create(cls, job_identifier: str, build_number: str, now: float) -> "LockInfo":
        """Describe the current process as lock holder at time *now*."""
        return cls(
            job_identifier=job_identifier,
            build_number=str(build_number),
            hostname=socket.gethostname(),
            pid=str(os.getpid()),
            timestamp=int(now),
            human_time=datetime.fromtimestamp(now).strftime("%Y-%m-%d %H:%M:%S"),
        )

    @classmethod
    def parse(cls, text: str) -> "LockInfo":
        """Parse `key: value` lines. Unknown keys are ignored.

        A missing or non-integer timestamp parses as None, which callers
        treat as a stale lock.
        """
        values = {}
        for line in text.splitlines():
            key, sep, value = line.partition(":")
            if not sep:
                continue
            values[key.strip()] = value.strip()

        try:
            timestamp = int(values["timestamp"])
        except (KeyError, ValueError):
            timestamp = None

        return cls(
            job_identifier=values.get("job_identifier", ""),
            build_number=values.get("build_number", ""),
            hostname=values.get("hostname", ""),
            pid=values.get("pid", ""),
            timestamp=timestamp,
            human_time=values.get("human_time", ""),
        )

    def render(self) -> str:
        lines = []
        for field in _FIELDS:
            value = getattr(self, field)
            lines.append(f"{field}: {'' if value is None else value}")
        return "\n".join(lines) + "\n"

    def age(self, now: float) -> int | None:
        """Seconds since the lock was taken, or None without a timestamp."""
        if self.timestamp is None:
            return None
        return int(now) - self.timestamp


class LockStore:
    """The lock directory for one repository.

    The lock is published by renaming a private, fully written directory
    onto the lock path, so a visible lock always carries its lock.info and
    only one of several racing creators succeeds.
    """

    def __init__(self, base_path: str, repo_name: str):
        self.repo_name = repo_name
        self.repo_dir = os.path.join(base_path, repo_name)
        self.path = os.path.join(self.repo_dir, LOCK_DIR)
        self.info_path = os.path.join(self.path, LOCK_INFO)

    def _scratch_dir(self) -> str:
        os.makedirs(self.repo_dir, exist_ok=True)
        return tempfile.mkdtemp(dir=self.repo_dir, prefix=f"{LOCK_DIR}.")

    def try_create(self, info: LockInfo) -> bool:
        """Publish a lock holding *info*. Returns False if a lock already exists.

        OSError from writing the metadata propagates; nothing is published then.
        """
        tmp = self._scratch_dir()
        try:
            os.chmod(tmp, 0o755)
            with open(os.path.join(tmp, LOCK_INFO), "w") as f:
                f.write(info.render())
            try:
                # Fails on a non-empty directory (every published lock) or a file
                os.rename(tmp, self.path)
            except OSError:
                if os.path.lexists(self.path):
                    return False
                raise
            tmp = None
            return True
        finally:
            if tmp is not None:
                shutil.rmtree(tmp)

    def exists(self) -> bool:
        return os.path.lexists(self.path)

    def destroy(self) -> None:
        """Remove the lock. Safe to call when absent or while another
        process removes the same lock.

        The lock is first moved into a private directory in one rename, so
        only what was at the lock path at that moment is deleted.
        """
        tomb = self._scratch_dir()
        try:
            os.rename(self.path, os.path.join(tomb, LOCK_DIR))
        except FileNotFoundError:
            pass
        finally:
            shutil.rmtree(tomb)

    def read_raw(self) -> str | None:
        """Raw lock.info text, or None if missing or unreadable."""
        try:
            with open(self.info_path) as f:
                return f.read()
        except (OSError, UnicodeDecodeError):
            return None

    def read_info(self) -> LockInfo | None:
        text = self.read_raw()
        if text is None:
            return None
        return LockInfo.parse(text)
