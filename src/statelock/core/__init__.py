"""Core module - foundation components shared by the lock backends.

- Version information
- Custom exceptions
- Configuration dataclasses and option validation
- Constants and defaults
"""

from statelock.core.version import __version__

from statelock.core.exceptions import (
    StateLockError,
    ConfigInvalidError,
    BackendNotFoundError,
    CredentialsMissingError,
    ResourceNotFoundError,
    LockContentionError,
    BackupFailedError,
    TransportError,
)

from statelock.core.config import (
    RetryConfig,
    AzureBlobLockConfig,
    DynamoDBLockConfig,
    LockSpec,
    StateConfig,
)

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "StateLockError",
    "ConfigInvalidError",
    "BackendNotFoundError",
    "CredentialsMissingError",
    "ResourceNotFoundError",
    "LockContentionError",
    "BackupFailedError",
    "TransportError",
    # Configuration
    "RetryConfig",
    "AzureBlobLockConfig",
    "DynamoDBLockConfig",
    "LockSpec",
    "StateConfig",
]
