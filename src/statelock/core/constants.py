"""Constants and default values for statelock.

Option names, environment variable names and backend defaults are kept
here so the config dataclasses, backends and CLI agree on them.
"""

from datetime import UTC, datetime

# ==================== ENVIRONMENT ====================

# Azure storage account access key (same name Terraform's azurerm backend reads)
ARM_ACCESS_KEY_ENV: str = "ARM_ACCESS_KEY"
# Variable a cooperating process reads the current lease id from
ARM_LEASE_ID_ENV: str = "ARM_LEASE_ID"
# Optional blob endpoint override (e.g. Azurite at http://127.0.0.1:10000/devstoreaccount1)
ARM_STORAGE_ENDPOINT_ENV: str = "ARM_STORAGE_ENDPOINT"

LOG_LEVEL_ENV: str = "LOG_LEVEL"

# ==================== AZURE BLOB LEASE ====================

AZURE_OPTION_STORAGE_ACCOUNT: str = "storage_account_name"
AZURE_OPTION_CONTAINER: str = "container_name"
AZURE_OPTION_KEY: str = "key"
AZURE_OPTION_BACKUP: str = "backup"

AZURE_BLOB_ENDPOINT_TEMPLATE: str = "https://{account}.blob.core.windows.net"
# Infinite lease; only a break or an explicit release ends it
AZURE_INFINITE_LEASE: int = -1
AZURE_LEASE_BREAK_PERIOD: int = 0

AZURE_LEASE_ALREADY_PRESENT: str = "LeaseAlreadyPresent"
AZURE_LEASE_NOT_PRESENT: str = "LeaseNotPresentWithLeaseOperation"

# ==================== DYNAMODB ====================

DYNAMODB_OPTION_STATE_FILE_ID: str = "state_file_id"
DYNAMODB_OPTION_REGION: str = "aws_region"
DYNAMODB_OPTION_TABLE: str = "table_name"
DYNAMODB_OPTION_MAX_RETRIES: str = "max_lock_retries"
DYNAMODB_OPTION_RETRY_INTERVAL: str = "retry_interval_seconds"

DEFAULT_AWS_REGION: str = "us-east-1"
DEFAULT_TABLE_NAME: str = "statelock_locks"
DEFAULT_MAX_RETRIES_WAITING_FOR_LOCK: int = 360
DEFAULT_SLEEP_BETWEEN_RETRIES_SECONDS: float = 10.0

DYNAMODB_HASH_KEY: str = "StateFileId"
DYNAMODB_ATTR_USERNAME: str = "Username"
DYNAMODB_ATTR_IP: str = "Ip"
DYNAMODB_ATTR_CREATION_DATE: str = "CreationDate"
DYNAMODB_TABLE_CAPACITY_UNITS: int = 1

# ==================== FORMATTING ====================

BOOL_TRUE_VALUES: frozenset[str] = frozenset({"1", "true", "yes", "on"})
BOOL_FALSE_VALUES: frozenset[str] = frozenset({"0", "false", "no", "off"})


def rfc3339_now() -> str:
    """Current UTC time as an RFC3339 timestamp with seconds precision."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
