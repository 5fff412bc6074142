"""Lock backed by a conditional insert into a DynamoDB table.

A lock is held while an item keyed by the state file id exists. Acquire
inserts it with attribute_not_exists(), so at most one writer can win;
release deletes it.
"""

from __future__ import annotations

import contextlib
import getpass
import logging
import socket
from collections.abc import Callable, Iterator, Mapping
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from statelock.core.config import DynamoDBLockConfig
from statelock.core.constants import (
    DYNAMODB_ATTR_CREATION_DATE,
    DYNAMODB_ATTR_IP,
    DYNAMODB_ATTR_USERNAME,
    DYNAMODB_HASH_KEY,
    DYNAMODB_TABLE_CAPACITY_UNITS,
    rfc3339_now,
)
from statelock.core.exceptions import (
    CredentialsMissingError,
    LockContentionError,
    ResourceNotFoundError,
    TransportError,
)
from statelock.core.locks.base import LockBackendKind, LockGrant
from statelock.core.logging import with_log_context
from statelock.core.retry import retry_from_config

_CONDITION_FAILED = "ConditionalCheckFailedException"
_TABLE_NOT_FOUND = "ResourceNotFoundException"
_TABLE_IN_USE = "ResourceInUseException"
_TABLE_ACTIVE = "ACTIVE"
_UNKNOWN = "unknown"


class _LockRecordExists(Exception):
    """The conditional put lost to an existing record."""

    def __init__(self, holder: dict[str, str]):
        self.holder = holder
        super().__init__(f"lock record already exists (holder: {holder or _UNKNOWN})")


def create_dynamodb_client(config: DynamoDBLockConfig) -> Any:
    """Client on the default AWS credential chain; credentials resolve on first call."""
    return boto3.client("dynamodb", region_name=config.aws_region)


def _client_error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def _current_username() -> str:
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        return _UNKNOWN


def _outbound_ip() -> str:
    # connect() on a UDP socket only selects a route; nothing is sent
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            return sock.getsockname()[0]
    except OSError:
        return _UNKNOWN


class DynamoDBLock:
    """Lock a state file by owning its record in a DynamoDB table.

    The table is created on first use. Acquire waits for a held lock by
    retrying the insert on a fixed interval.
    """

    backend = LockBackendKind.DYNAMODB

    def __init__(
        self,
        config: DynamoDBLockConfig,
        *,
        client_factory: Callable[[DynamoDBLockConfig], Any] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = config
        self._client_factory = client_factory or create_dynamodb_client
        self._client: Any = None
        self.logger = with_log_context(
            logger or logging.getLogger(__name__),
            backend=self.backend.value,
            resource=self.describe(),
        )

    @classmethod
    def from_options(cls, options: Mapping[str, str]) -> DynamoDBLock:
        """Registry factory: validate options without touching the network."""
        return cls(DynamoDBLockConfig.from_options(options))

    def describe(self) -> str:
        c = self.config
        return f"dynamodb lock {c.state_file_id} in table {c.table_name} ({c.aws_region})"

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return f"DynamoDBLock({self.config!r})"

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = self._client_factory(self.config)
        return self._client

    def acquire(self) -> LockGrant:
        self.logger.info(f"Attempting to acquire lock for state file {self.config.state_file_id}")
        client = self._get_client()
        self._ensure_table(client)

        attempts = 0
        owner = {
            DYNAMODB_ATTR_USERNAME: {"S": _current_username()},
            DYNAMODB_ATTR_IP: {"S": _outbound_ip()},
        }

        @retry_from_config(self.config.retry_config(), (_LockRecordExists,), logger=self.logger)
        def put_lock_record() -> None:
            nonlocal attempts
            attempts += 1
            self._put_lock_record(client, owner)

        try:
            put_lock_record()
        except _LockRecordExists as e:
            self.logger.warning(f"Giving up after {attempts} attempt(s); lock is still held")
            raise LockContentionError(self.describe(), attempts=attempts, holder=e.holder) from e

        self.logger.info("Lock acquired")
        return LockGrant(backend=self.backend, resource=self.describe(), acquired_at=rfc3339_now())

    def release(self) -> None:
        self.logger.info(f"Attempting to release lock for state file {self.config.state_file_id}")
        client = self._get_client()
        # delete_item succeeds whether or not the record exists
        with self._translate_sdk_errors("delete lock record"):
            client.delete_item(
                TableName=self.config.table_name,
                Key={DYNAMODB_HASH_KEY: {"S": self.config.state_file_id}},
            )
        self.logger.info("Lock released")

    def _ensure_table(self, client: Any) -> None:
        table_name = self.config.table_name
        with self._translate_sdk_errors("describe lock table"):
            try:
                status = client.describe_table(TableName=table_name)["Table"].get("TableStatus")
            except ClientError as e:
                if _client_error_code(e) != _TABLE_NOT_FOUND:
                    raise
                status = None

        if status == _TABLE_ACTIVE:
            return

        if status is None:
            self.logger.info(f"Lock table {table_name} does not exist; creating it")
            with self._translate_sdk_errors("create lock table"):
                try:
                    client.create_table(
                        TableName=table_name,
                        AttributeDefinitions=[{"AttributeName": DYNAMODB_HASH_KEY, "AttributeType": "S"}],
                        KeySchema=[{"AttributeName": DYNAMODB_HASH_KEY, "KeyType": "HASH"}],
                        ProvisionedThroughput={
                            "ReadCapacityUnits": DYNAMODB_TABLE_CAPACITY_UNITS,
                            "WriteCapacityUnits": DYNAMODB_TABLE_CAPACITY_UNITS,
                        },
                    )
                except ClientError as e:
                    # Another process created it first
                    if _client_error_code(e) != _TABLE_IN_USE:
                        raise
        else:
            # Usually CREATING: another process's first acquire() made it moments ago
            self.logger.info(f"Lock table {table_name} is {status}; waiting for it to become active")

        with self._translate_sdk_errors("wait for lock table"):
            client.get_waiter("table_exists").wait(TableName=table_name)
        self.logger.info(f"Lock table {table_name} is active")

    def _put_lock_record(self, client: Any, owner: dict[str, dict[str, str]]) -> None:
        item = {
            DYNAMODB_HASH_KEY: {"S": self.config.state_file_id},
            **owner,
            DYNAMODB_ATTR_CREATION_DATE: {"S": rfc3339_now()},
        }
        with self._translate_sdk_errors("put lock record"):
            try:
                client.put_item(
                    TableName=self.config.table_name,
                    Item=item,
                    ConditionExpression=f"attribute_not_exists({DYNAMODB_HASH_KEY})",
                )
            except ClientError as e:
                if _client_error_code(e) != _CONDITION_FAILED:
                    raise
                raise _LockRecordExists(self._read_holder(client)) from e

    def _read_holder(self, client: Any) -> dict[str, str]:
        """Holder metadata of the existing record; informational, so failures are only logged."""
        try:
            response = client.get_item(
                TableName=self.config.table_name,
                Key={DYNAMODB_HASH_KEY: {"S": self.config.state_file_id}},
                ConsistentRead=True,
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.debug(f"Could not read lock holder: {e}")
            return {}

        item = response.get("Item") or {}
        holder = {
            "username": item.get(DYNAMODB_ATTR_USERNAME, {}).get("S"),
            "ip": item.get(DYNAMODB_ATTR_IP, {}).get("S"),
            "created": item.get(DYNAMODB_ATTR_CREATION_DATE, {}).get("S"),
        }
        holder = {k: v for k, v in holder.items() if v}
        if holder:
            self.logger.warning(
                f"Lock is held by {holder.get('username', _UNKNOWN)} since {holder.get('created', _UNKNOWN)}"
            )
        return holder

    @contextlib.contextmanager
    def _translate_sdk_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except NoCredentialsError as e:
            raise CredentialsMissingError(
                "no AWS credentials found",
                source="AWS credential chain",
                details="configure AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY, a profile, or an instance role",
            ) from e
        except ClientError as e:
            if _client_error_code(e) == _TABLE_NOT_FOUND:
                raise ResourceNotFoundError(
                    f"lock table {self.config.table_name} does not exist",
                    resource=self.describe(),
                ) from e
            raise TransportError(
                "DynamoDB request failed",
                operation=operation,
                resource=self.describe(),
                status_code=e.response.get("ResponseMetadata", {}).get("HTTPStatusCode"),
                original_error=e,
            ) from e
        except BotoCoreError as e:
            raise TransportError(
                "DynamoDB request failed",
                operation=operation,
                resource=self.describe(),
                original_error=e,
            ) from e
