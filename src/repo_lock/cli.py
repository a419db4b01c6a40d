"""Click entry point: repo-lock REPO_NAME acquire|release|status."""

import sys

import click

from repo_lock import __version__, log
from repo_lock import lock as lock_mod
from repo_lock.config import load_config, resolve_identity
from repo_lock.store import LockStore

OPERATIONS = ("acquire", "release", "status")

USAGE = "Usage: repo-lock <repo-name> <acquire|release|status> [job-identifier] [build-number]"


def _usage_error(msg: str, details: list[str]) -> None:
    log.error(msg)
    for line in details:
        click.echo(line, err=True)
    sys.exit(1)


@click.command()
@click.version_option(version=__version__, prog_name="repo-lock")
@click.argument("repo_name", required=False)
@click.argument("operation", required=False)
@click.argument("job_identifier", required=False)
@click.argument("build_number", required=False)
@click.option("--base-path", default=None, help="Directory holding the repositories")
@click.option("--config", "config_path", default=None, help="YAML settings file")
@click.option("--max-wait-minutes", type=int, default=None, help="Total wait budget")
@click.option("--initial-backoff", type=int, default=None, help="First wait, in seconds")
@click.option("--backoff-increment", type=int, default=None, help="Added to each wait, in seconds")
@click.option("--stale-minutes", type=int, default=None, help="Age after which a lock is stale")
def main(
    repo_name,
    operation,
    job_identifier,
    build_number,
    base_path,
    config_path,
    max_wait_minutes,
    initial_backoff,
    backoff_increment,
    stale_minutes,
):
    """Serialize publish+sync jobs on a shared repository."""
    if not repo_name or not operation:
        _usage_error("Missing required parameters", [USAGE])

    if operation not in OPERATIONS:
        _usage_error(
            f"Invalid operation: {operation}",
            [
                f"Valid operations: {', '.join(OPERATIONS)}",
                "",
                "Usage:",
                "  repo-lock <repo-name> acquire <job-identifier> <build-number>",
                "  repo-lock <repo-name> release <job-identifier> <build-number>",
                "  repo-lock <repo-name> status",
            ],
        )

    try:
        config = load_config(
            config_path,
            overrides={
                "repository_base_path": base_path,
                "max_wait_minutes": max_wait_minutes,
                "initial_backoff_seconds": initial_backoff,
                "backoff_increment_seconds": backoff_increment,
                "stale_threshold_minutes": stale_minutes,
            },
        )
    except (OSError, ValueError) as e:
        log.error(f"Invalid configuration: {e}")
        sys.exit(1)

    job, build = resolve_identity(job_identifier, build_number)
    store = LockStore(config.repository_base_path, repo_name)

    try:
        if operation == "acquire":
            code = _acquire(store, job, build, config)
        elif operation == "release":
            lock_mod.release(store, job, build)
            code = 0
        else:
            _status(store, config)
            code = 0
    except OSError as e:
        log.error(str(e))
        code = 1
    sys.exit(code)


def _acquire(store, job, build, config) -> int:
    policy = lock_mod.RetryPolicy.from_config(config)
    try:
        lock_mod.acquire(store, job, build, policy, config.stale_threshold_seconds)
    except lock_mod.LockTimeout as e:
        log.error(f"TIMEOUT: Failed to acquire lock after {config.max_wait_minutes} minutes")
        log.error("Current lock holder:")
        if e.raw is not None:
            for line in e.raw.splitlines():
                log.detail(line, err=True)
        else:
            log.error("Lock info file missing (lock directory exists but no metadata)")
        return 1
    return 0


def _status(store, config) -> None:
    log.banner(f"Lock Status for repository: {store.repo_name}")
    result = lock_mod.status(store, config.stale_threshold_seconds)

    if not result.locked:
        log.info("Repository is UNLOCKED")
        return

    log.info("Repository is LOCKED")
    if result.corrupted:
        log.warn("Lock directory exists but metadata file is missing")
        log.warn("This indicates a corrupted lock state")
        return

    click.echo("")
    click.echo("Lock Details:")
    for line in result.info.render().splitlines():
        log.detail(line)
    click.echo("")

    if result.age is not None:
        click.echo(f"Lock Age: {result.age // 60} minutes ({result.age} seconds)")
        if result.stale:
            log.warn(f"Lock appears STALE (older than {config.stale_threshold_minutes} minutes)")


if __name__ == "__main__":
    main()
