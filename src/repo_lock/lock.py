"""Repository lock acquire/release/status with stale recovery."""

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from repo_lock import log
from repo_lock.config import LockConfig
from repo_lock.store import LockInfo, LockStore


class LockTimeout(RuntimeError):
    """Wait budget exhausted while another job held the lock."""

    def __init__(self, repo_name: str, waited: int, holder: LockInfo | None, raw: str | None):
        super().__init__(f"Failed to acquire lock for {repo_name} after {waited // 60} minutes")
        self.repo_name = repo_name
        self.waited = waited
        self.holder = holder
        self.raw = raw


@dataclass(frozen=True)
class RetryPolicy:
    """Linear backoff bounded by a total wait budget (all in seconds)."""

    max_wait: int = 20 * 60
    initial: int = 60
    increment: int = 30

    @classmethod
    def from_config(cls, config: LockConfig) -> "RetryPolicy":
        return cls(
            max_wait=config.max_wait_seconds,
            initial=config.initial_backoff_seconds,
            increment=config.backoff_increment_seconds,
        )

    def delays(self) -> Iterator[int]:
        """Successive sleep durations. Unbounded; the caller enforces max_wait."""
        delay = self.initial
        while True:
            yield delay
            delay += self.increment


@dataclass
class LockStatus:
    locked: bool
    info: LockInfo | None = None
    age: int | None = None
    stale: bool = False
    corrupted: bool = False


def is_stale(store: LockStore, now: float, threshold: int) -> bool:
    """True if the existing lock may be reclaimed.

    Missing metadata or a missing timestamp count as stale. Otherwise the
    lock is stale only once its age is strictly greater than *threshold*.
    """
    info = store.read_info()
    if info is None:
        log.warn("Lock directory exists but no metadata file - considering stale")
        return True

    age = info.age(now)
    if age is None:
        log.warn("No timestamp in lock file - considering stale")
        return True

    if age > threshold:
        log.warn(f"Lock age: {age // 60} minutes (threshold: {threshold // 60} minutes)")
        return True
    return False


def _log_holder(store: LockStore) -> None:
    raw = store.read_raw()
    if raw is None:
        return
    log.warn("Current lock holder:")
    for line in raw.splitlines():
        log.warn(f"  {line}")


def _timeout(store: LockStore, elapsed: float) -> LockTimeout:
    return LockTimeout(store.repo_name, int(elapsed), store.read_info(), store.read_raw())


def acquire(
    store: LockStore,
    job_identifier: str,
    build_number: str,
    policy: RetryPolicy,
    stale_threshold: int,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], None] = time.sleep,
) -> LockInfo:
    """Acquire the lock, waiting with linear backoff. Returns the written metadata.

    Stale or corrupted locks are removed and retried without sleeping.
    Raises LockTimeout once policy.max_wait seconds have passed on *clock*.
    There is no ordering among waiters.
    """
    log.banner(f"Acquiring lock for repository: {store.repo_name}")
    log.info(f"Job: {job_identifier} #{build_number}")

    start = clock()
    delays = policy.delays()

    while True:
        info = LockInfo.create(job_identifier, build_number, clock())
        if store.try_create(info):
            log.info("Lock acquired successfully")
            return info

        if is_stale(store, clock(), stale_threshold):
            log.warn("Detected stale lock - removing and retrying")
            store.destroy()
            continue

        log.warn("Lock is currently held by another job")
        _log_holder(store)

        # Also checked before sleeping, so a zero budget never waits
        elapsed = clock() - start
        if elapsed >= policy.max_wait:
            raise _timeout(store, elapsed)

        delay = next(delays)
        log.warn(f"Waiting {delay} seconds before retry...")
        log.warn(
            f"Total wait time so far: {int(elapsed) // 60} minutes "
            f"(max: {policy.max_wait // 60} minutes)"
        )
        sleep(delay)

        elapsed = clock() - start
        if elapsed >= policy.max_wait:
            raise _timeout(store, elapsed)


def release(store: LockStore, job_identifier: str, build_number: str) -> bool:
    """Remove the lock. Returns False if there was nothing to release.

    Ownership is not enforced: releasing another job's lock only warns, since
    retried or rerun jobs legitimately release locks taken by earlier attempts.
    """
    log.banner(f"Releasing lock for repository: {store.repo_name}")
    log.info(f"Job: {job_identifier} #{build_number}")

    if not store.exists():
        log.warn("No lock to release (lock directory does not exist)")
        return False

    holder = store.read_info()
    if holder is not None:
        log.info(f"Current lock holder: {holder.job_identifier} #{holder.build_number}")
        log.info(f"This job: {job_identifier} #{build_number}")
        if holder.job_identifier != job_identifier:
            log.warn(f"Releasing lock held by different job: {holder.job_identifier}")
            log.warn("This might be normal if job was retried or manually triggered")

    store.destroy()
    log.info("Lock released successfully")
    return True


def status(store: LockStore, stale_threshold: int, now: float | None = None) -> LockStatus:
    """Inspect the lock without modifying it."""
    if not store.exists():
        return LockStatus(locked=False)

    info = store.read_info()
    if info is None:
        return LockStatus(locked=True, corrupted=True)

    age = info.age(time.time() if now is None else now)
    return LockStatus(
        locked=True,
        info=info,
        age=age,
        stale=age is not None and age > stale_threshold,
    )


@contextmanager
def held(
    store: LockStore,
    job_identifier: str,
    build_number: str,
    policy: RetryPolicy,
    stale_threshold: int,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[LockInfo]:
    """Hold the lock for the duration of a with-block."""
    info = acquire(
        store,
        job_identifier,
        build_number,
        policy,
        stale_threshold,
        clock=clock,
        sleep=sleep,
    )
    try:
        yield info
    finally:
        release(store, job_identifier, build_number)
