"""
statelock - remote state locking on Azure Blob leases and DynamoDB.

Resolve a lock from a backend name and its options, then hold it around
the operation that mutates the shared state file:

    from statelock import create_lock, hold_lock

    lock = create_lock("dynamodb", {"state_file_id": "prod/network"})
    with hold_lock(lock):
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from statelock.core.exceptions import (
    BackendNotFoundError,
    BackupFailedError,
    ConfigInvalidError,
    CredentialsMissingError,
    LockContentionError,
    ResourceNotFoundError,
    StateLockError,
    TransportError,
)
from statelock.core.lazy import make_getattr
from statelock.core.version import __version__

_LOCKS_MODULE = "statelock.core.locks"
_LAZY_EXPORTS = {
    "AzureBlobLeaseLock": _LOCKS_MODULE,
    "DynamoDBLock": _LOCKS_MODULE,
    "LeaseToken": _LOCKS_MODULE,
    "Lock": _LOCKS_MODULE,
    "LockBackendKind": _LOCKS_MODULE,
    "LockGrant": _LOCKS_MODULE,
    "available_backends": _LOCKS_MODULE,
    "create_lock": _LOCKS_MODULE,
    "hold_lock": _LOCKS_MODULE,
    "load_config_file": _LOCKS_MODULE,
    "parse_config": _LOCKS_MODULE,
    "resolve_lock_spec": _LOCKS_MODULE,
}

if TYPE_CHECKING:
    from statelock.core.locks import (
        AzureBlobLeaseLock,
        DynamoDBLock,
        LeaseToken,
        Lock,
        LockBackendKind,
        LockGrant,
        available_backends,
        create_lock,
        hold_lock,
        load_config_file,
        parse_config,
        resolve_lock_spec,
    )

__all__ = [
    "__version__",
    "BackendNotFoundError",
    "BackupFailedError",
    "ConfigInvalidError",
    "CredentialsMissingError",
    "LockContentionError",
    "ResourceNotFoundError",
    "StateLockError",
    "TransportError",
    *_LAZY_EXPORTS,
]

__getattr__ = make_getattr(__name__, _LAZY_EXPORTS)
