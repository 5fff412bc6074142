"""Read-only registry of the built-in lock backends."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType

from statelock.core.exceptions import BackendNotFoundError
from statelock.core.locks.azure_blob import AzureBlobLeaseLock
from statelock.core.locks.base import Lock, LockBackendKind
from statelock.core.locks.dynamodb import DynamoDBLock

LockFactory = Callable[[Mapping[str, str]], Lock]

BUILTIN_LOCKS: Mapping[LockBackendKind, LockFactory] = MappingProxyType(
    {
        LockBackendKind.AZURE: AzureBlobLeaseLock.from_options,
        LockBackendKind.DYNAMODB: DynamoDBLock.from_options,
    }
)


def available_backends() -> list[str]:
    """Registered backend names, sorted."""
    return sorted(kind.value for kind in BUILTIN_LOCKS)


def parse_backend_kind(name: str) -> LockBackendKind:
    """Map a user-supplied backend name to its kind (trimmed, case-insensitive)."""
    normalized = (name or "").strip().lower()
    try:
        return LockBackendKind(normalized)
    except ValueError:
        raise BackendNotFoundError(name, available_backends()) from None


def lookup_lock_factory(name: str) -> LockFactory:
    """Return the factory registered for a backend name."""
    return BUILTIN_LOCKS[parse_backend_kind(name)]
