"""Locking subsystem for remote state files.

Backends share the Lock protocol from base; callers normally obtain one
through create_lock() or parse_config() rather than constructing it.
"""

from statelock.core.locks.azure_blob import AzureBlobLeaseLock, AzureBlobStorageClient
from statelock.core.locks.base import LeaseToken, Lock, LockBackendKind, LockGrant
from statelock.core.locks.dynamodb import DynamoDBLock
from statelock.core.locks.manager import create_lock, hold_lock, load_config_file, parse_config, resolve_lock_spec
from statelock.core.locks.registry import BUILTIN_LOCKS, available_backends, lookup_lock_factory

__all__ = [
    "BUILTIN_LOCKS",
    "AzureBlobLeaseLock",
    "AzureBlobStorageClient",
    "DynamoDBLock",
    "LeaseToken",
    "Lock",
    "LockBackendKind",
    "LockGrant",
    "available_backends",
    "create_lock",
    "hold_lock",
    "load_config_file",
    "lookup_lock_factory",
    "parse_config",
    "resolve_lock_spec",
]
