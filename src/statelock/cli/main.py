"""CLI entrypoint."""

from __future__ import annotations

import argparse
import logging
import sys

from statelock.cli.parser import parse_arguments
from statelock.core.credentials import bootstrap_dotenv
from statelock.core.exceptions import BackupFailedError, ConfigInvalidError, LockContentionError, StateLockError
from statelock.core.locks import LeaseToken, Lock, available_backends, create_lock, load_config_file
from statelock.core.logging import setup_logging

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONTENTION = 2

BACKUP_NAME_ENV = "STATELOCK_BACKUP_NAME"


def _print_error(error: StateLockError) -> None:
    print(f"ERROR: {error}", file=sys.stderr)


def resolve_lock(args: argparse.Namespace) -> Lock:
    """Build the lock named on the command line or in --config."""
    if args.config:
        state = load_config_file(args.config)
        if state.lock is None:
            raise ConfigInvalidError(f"{args.config} has no lock section", field="lock")
        return state.lock
    return create_lock(args.backend, dict(args.options))


def _acquire(lock: Lock, logger: logging.Logger) -> None:
    try:
        grant = lock.acquire()
    except BackupFailedError:
        # Nobody would be left holding the lease once this process exits
        logger.warning(f"Backup failed; releasing {lock.describe()}")
        lock.release()
        raise

    # stdout is eval-friendly; everything else goes to stderr
    if grant.lease_token is not None:
        for name, value in grant.lease_token.as_env().items():
            print(f"{name}={value}")
    if grant.backup_name:
        print(f"{BACKUP_NAME_ENV}={grant.backup_name}")


def _release(lock: Lock) -> None:
    lock.release()
    if lock.backend.issues_lease_token:
        for name, value in LeaseToken.cleared_env().items():
            print(f"{name}={value}")


def main(argv: list[str] | None = None) -> int:
    args = parse_arguments(argv)
    # .env may set LOG_LEVEL, so it is loaded before logging is configured
    bootstrap_dotenv()
    logger = setup_logging(args.log_level, args.log_format)

    if args.command == "backends":
        for name in available_backends():
            print(name)
        return EXIT_SUCCESS

    try:
        lock = resolve_lock(args)
        if args.command == "acquire":
            _acquire(lock, logger)
        elif args.command == "release":
            _release(lock)
        else:
            print(lock.describe())
    except LockContentionError as e:
        _print_error(e)
        return EXIT_CONTENTION
    except StateLockError as e:
        _print_error(e)
        return EXIT_FAILURE

    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
