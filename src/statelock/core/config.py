"""Configuration dataclasses for statelock.

Each backend turns the flat option map it receives into one of these
frozen dataclasses exactly once, at resolution time. Nothing here touches
the network.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from statelock.core.config_validation import (
    optional_option,
    parse_bool_option,
    parse_float_option,
    parse_int_option,
    require_option,
    warn_unknown_options,
)
from statelock.core.constants import (
    AZURE_OPTION_BACKUP,
    AZURE_OPTION_CONTAINER,
    AZURE_OPTION_KEY,
    AZURE_OPTION_STORAGE_ACCOUNT,
    DEFAULT_AWS_REGION,
    DEFAULT_MAX_RETRIES_WAITING_FOR_LOCK,
    DEFAULT_SLEEP_BETWEEN_RETRIES_SECONDS,
    DEFAULT_TABLE_NAME,
    DYNAMODB_OPTION_MAX_RETRIES,
    DYNAMODB_OPTION_REGION,
    DYNAMODB_OPTION_RETRY_INTERVAL,
    DYNAMODB_OPTION_STATE_FILE_ID,
    DYNAMODB_OPTION_TABLE,
)

if TYPE_CHECKING:
    from statelock.core.locks.base import Lock


@dataclass(frozen=True)
class RetryConfig:
    """Fixed-delay retry policy.

    Attributes:
        max_attempts: Total attempts including the first one
        delay: Seconds to sleep between attempts
    """

    max_attempts: int
    delay: float


@dataclass(frozen=True)
class AzureBlobLockConfig:
    """Identity of a blob protected by an Azure Storage lease."""

    storage_account_name: str
    container_name: str
    key: str
    backup: bool = False

    BACKEND = "azure"
    KNOWN_OPTIONS = (
        AZURE_OPTION_STORAGE_ACCOUNT,
        AZURE_OPTION_CONTAINER,
        AZURE_OPTION_KEY,
        AZURE_OPTION_BACKUP,
    )

    @classmethod
    def from_options(cls, options: Mapping[str, object]) -> AzureBlobLockConfig:
        """Validate the option map and apply defaults."""
        backend = cls.BACKEND
        config = cls(
            storage_account_name=require_option(options, AZURE_OPTION_STORAGE_ACCOUNT, backend=backend),
            container_name=require_option(options, AZURE_OPTION_CONTAINER, backend=backend),
            key=require_option(options, AZURE_OPTION_KEY, backend=backend),
            backup=parse_bool_option(options, AZURE_OPTION_BACKUP, False, backend=backend),
        )
        warn_unknown_options(options, cls.KNOWN_OPTIONS, backend=backend)
        return config


@dataclass(frozen=True)
class DynamoDBLockConfig:
    """Identity and retry policy of a DynamoDB lock record.

    Attributes:
        state_file_id: Logical lock identifier, the item's hash key
        aws_region: Region of the lock table (default: us-east-1)
        table_name: Lock table name (default: statelock_locks)
        max_lock_retries: Total conditional-put attempts before giving up (default: 360)
        retry_interval_seconds: Fixed sleep between attempts (default: 10)
    """

    state_file_id: str
    aws_region: str = DEFAULT_AWS_REGION
    table_name: str = DEFAULT_TABLE_NAME
    max_lock_retries: int = DEFAULT_MAX_RETRIES_WAITING_FOR_LOCK
    retry_interval_seconds: float = DEFAULT_SLEEP_BETWEEN_RETRIES_SECONDS

    BACKEND = "dynamodb"
    KNOWN_OPTIONS = (
        DYNAMODB_OPTION_STATE_FILE_ID,
        DYNAMODB_OPTION_REGION,
        DYNAMODB_OPTION_TABLE,
        DYNAMODB_OPTION_MAX_RETRIES,
        DYNAMODB_OPTION_RETRY_INTERVAL,
    )

    @classmethod
    def from_options(cls, options: Mapping[str, object]) -> DynamoDBLockConfig:
        """Validate the option map and apply defaults."""
        backend = cls.BACKEND
        config = cls(
            state_file_id=require_option(options, DYNAMODB_OPTION_STATE_FILE_ID, backend=backend),
            aws_region=optional_option(options, DYNAMODB_OPTION_REGION, DEFAULT_AWS_REGION, backend=backend),
            table_name=optional_option(options, DYNAMODB_OPTION_TABLE, DEFAULT_TABLE_NAME, backend=backend),
            max_lock_retries=parse_int_option(
                options,
                DYNAMODB_OPTION_MAX_RETRIES,
                DEFAULT_MAX_RETRIES_WAITING_FOR_LOCK,
                backend=backend,
                minimum=1,
            ),
            retry_interval_seconds=parse_float_option(
                options,
                DYNAMODB_OPTION_RETRY_INTERVAL,
                DEFAULT_SLEEP_BETWEEN_RETRIES_SECONDS,
                backend=backend,
                minimum=0.0,
            ),
        )
        warn_unknown_options(options, cls.KNOWN_OPTIONS, backend=backend)
        return config

    def retry_config(self) -> RetryConfig:
        """Fixed-delay policy: max_lock_retries attempts, retry_interval_seconds apart."""
        return RetryConfig(max_attempts=self.max_lock_retries, delay=self.retry_interval_seconds)


@dataclass(frozen=True)
class LockSpec:
    """A backend selection plus its raw option map, as decoded from config."""

    backend: str
    options: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))


@dataclass(frozen=True)
class StateConfig:
    """A parsed configuration: the resolved lock and the opaque remote state."""

    lock: Lock | None = None
    remote_state: Any | None = None
