"""Lock abstraction shared by every backend.

Design principles:
- Ownership is defined by the cloud service (lease grant or conditional
  insert). Nothing held locally is treated as lock truth.
- Instances carry only identity fields fixed at construction, plus the
  lease backend's current lease token.
- acquire() returns everything a caller needs afterwards; there is no
  process-wide side channel.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from statelock.core.constants import ARM_LEASE_ID_ENV


class LockBackendKind(str, Enum):
    """Closed set of supported lock backends."""

    AZURE = "azure"
    DYNAMODB = "dynamodb"

    def __str__(self) -> str:
        return self.value

    @property
    def issues_lease_token(self) -> bool:
        return self is LockBackendKind.AZURE


@dataclass(frozen=True)
class LeaseToken:
    """Provider-issued proof that the current holder owns a blob lease.

    A fresh token is proposed on every acquire attempt and is only valid
    until the matching release.
    """

    value: str

    def __str__(self) -> str:
        return self.value

    def as_env(self) -> dict[str, str]:
        """Environment entries for a cooperating process working on the same blob."""
        return {ARM_LEASE_ID_ENV: self.value}

    @staticmethod
    def cleared_env() -> dict[str, str]:
        """Entries that blank a previously published token after release."""
        return {ARM_LEASE_ID_ENV: ""}


@dataclass(frozen=True)
class LockGrant:
    """Result of a successful acquire()."""

    backend: LockBackendKind
    resource: str
    acquired_at: str
    lease_token: LeaseToken | None = None
    backup_name: str | None = None


@runtime_checkable
class Lock(Protocol):
    """Capability contract every backend satisfies."""

    backend: LockBackendKind

    def acquire(self) -> LockGrant:
        """Block until the lock is held or a definitive failure is known.

        Raises a StateLockError subclass on failure; safe to call again
        after a failed attempt.
        """

    def release(self) -> None:
        """Relinquish the hold established by the most recent acquire()."""

    def describe(self) -> str:
        """Human-readable identity of the protected resource."""
