"""Lock resolution and lifecycle helpers.

Resolution turns a backend name plus a flat option map into a ready Lock
without performing any I/O; the first network call happens in acquire().
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from statelock.core.config import LockSpec, StateConfig
from statelock.core.exceptions import BackupFailedError, ConfigInvalidError, StateLockError
from statelock.core.locks.base import Lock, LockGrant
from statelock.core.locks.registry import lookup_lock_factory

logger = logging.getLogger(__name__)


def create_lock(backend_name: str, options: Mapping[str, Any] | None = None) -> Lock:
    """Construct the lock registered under backend_name.

    Raises:
        BackendNotFoundError: backend_name is not registered
        ConfigInvalidError: an option is missing or malformed
    """
    factory = lookup_lock_factory(backend_name)
    lock = factory(options or {})
    logger.debug(f"Resolved lock: {lock.describe()}")
    return lock


def resolve_lock_spec(spec: LockSpec) -> Lock:
    return create_lock(spec.backend, spec.options)


def parse_config(data: Mapping[str, Any] | None) -> StateConfig:
    """
    Resolve an already-decoded configuration mapping.

    Expected shape:
        {"lock": {"backend": "azure", "config": {...}}, "remote_state": ...}

    Both sections are optional. remote_state is returned untouched.
    """
    if not data:
        return StateConfig()
    if not isinstance(data, Mapping):
        raise ConfigInvalidError("configuration must be a mapping", details=f"got {type(data).__name__}")

    lock = None
    section = data.get("lock")
    if section is not None:
        if not isinstance(section, Mapping):
            raise ConfigInvalidError("lock section must be a mapping", field="lock")
        backend = str(section.get("backend") or "").strip()
        if not backend:
            raise ConfigInvalidError("lock backend must be set", field="backend")
        options = section.get("config") or {}
        if not isinstance(options, Mapping):
            raise ConfigInvalidError("lock config must be a mapping", field="config", backend=backend)
        lock = resolve_lock_spec(LockSpec(backend, options))

    return StateConfig(lock=lock, remote_state=data.get("remote_state"))


def load_config_file(path: str | Path) -> StateConfig:
    """Read a JSON configuration file and resolve it with parse_config()."""
    config_path = Path(path)
    try:
        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigInvalidError(f"configuration file not found: {config_path}") from None
    except json.JSONDecodeError as e:
        raise ConfigInvalidError(
            f"configuration file is not valid JSON: {config_path}",
            details=f"line {e.lineno}, column {e.colno}: {e.msg}",
        ) from e
    except OSError as e:
        raise ConfigInvalidError(f"cannot read configuration file: {config_path}", details=str(e)) from e
    return parse_config(data)


@contextmanager
def hold_lock(lock: Lock, logger: logging.Logger | logging.LoggerAdapter | None = None) -> Iterator[LockGrant]:
    """
    Hold a lock for the duration of a with block.

    Usage:
        with hold_lock(create_lock("azure", options)) as grant:
            run_terraform(env=grant.lease_token.as_env())

    A failed backup leaves the lease held, so it is released here before
    the BackupFailedError propagates. If the block raises and release()
    fails too, the release error is logged and the block's exception wins.
    """
    log = logger or logging.getLogger(__name__)
    try:
        grant = lock.acquire()
    except BackupFailedError:
        log.warning(f"Backup failed after acquiring {lock.describe()}; releasing it")
        lock.release()
        raise

    try:
        yield grant
    except BaseException:
        try:
            lock.release()
        except StateLockError as release_error:
            log.error(f"Failed to release {lock.describe()} after an error in the locked block: {release_error}")
        raise
    lock.release()
