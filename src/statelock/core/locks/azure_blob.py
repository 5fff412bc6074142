"""Lock backed by an Azure Blob Storage lease.

The protected state blob itself carries the lock: an infinite lease on it
means "held", no lease means "free". The storage service is the only
source of truth; nothing is persisted locally.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Protocol

from azure.core.credentials import AzureNamedKeyCredential
from azure.core.exceptions import AzureError, HttpResponseError
from azure.core.exceptions import ResourceNotFoundError as AzureResourceNotFoundError
from azure.storage.blob import BlobLeaseClient, BlobServiceClient

from statelock.core.config import AzureBlobLockConfig
from statelock.core.constants import (
    AZURE_BLOB_ENDPOINT_TEMPLATE,
    AZURE_INFINITE_LEASE,
    AZURE_LEASE_ALREADY_PRESENT,
    AZURE_LEASE_BREAK_PERIOD,
    AZURE_LEASE_NOT_PRESENT,
    rfc3339_now,
)
from statelock.core.credentials import load_azure_access_key, load_azure_endpoint_override
from statelock.core.exceptions import (
    BackupFailedError,
    LockContentionError,
    ResourceNotFoundError,
    TransportError,
)
from statelock.core.locks.base import LeaseToken, LockBackendKind, LockGrant
from statelock.core.logging import with_log_context


class BlobLeaseStore(Protocol):
    """Storage operations the lease lock needs.

    Implementations raise azure.core exceptions; the lock translates them.
    """

    def blob_exists(self, container: str, key: str) -> bool: ...

    def acquire_lease(self, container: str, key: str, lease_id: str) -> str: ...

    def break_lease(self, container: str, key: str) -> None: ...

    def read_blob(self, container: str, key: str) -> bytes: ...

    def write_blob(self, container: str, name: str, data: bytes) -> None: ...


class AzureBlobStorageClient:
    """BlobLeaseStore over the azure-storage-blob SDK."""

    def __init__(self, account_name: str, access_key: str, account_url: str | None = None):
        self.account_url = account_url or AZURE_BLOB_ENDPOINT_TEMPLATE.format(account=account_name)
        self._service = BlobServiceClient(
            account_url=self.account_url,
            credential=AzureNamedKeyCredential(account_name, access_key),
        )

    def blob_exists(self, container: str, key: str) -> bool:
        # exists() reports a missing container as a missing blob
        return self._service.get_blob_client(container, key).exists()

    def acquire_lease(self, container: str, key: str, lease_id: str) -> str:
        lease = self._service.get_blob_client(container, key).acquire_lease(
            lease_duration=AZURE_INFINITE_LEASE,
            lease_id=lease_id,
        )
        return lease.id

    def break_lease(self, container: str, key: str) -> None:
        lease = BlobLeaseClient(self._service.get_blob_client(container, key))
        lease.break_lease(lease_break_period=AZURE_LEASE_BREAK_PERIOD)

    def read_blob(self, container: str, key: str) -> bytes:
        return self._service.get_blob_client(container, key).download_blob().readall()

    def write_blob(self, container: str, name: str, data: bytes) -> None:
        self._service.get_blob_client(container, name).upload_blob(data, overwrite=False)


def create_storage_client(config: AzureBlobLockConfig) -> BlobLeaseStore:
    """Build an authenticated client; raises CredentialsMissingError without ARM_ACCESS_KEY."""
    access_key = load_azure_access_key(logger=logging.getLogger(__name__))
    return AzureBlobStorageClient(
        config.storage_account_name,
        access_key,
        account_url=load_azure_endpoint_override(),
    )


def _error_code(error: HttpResponseError) -> str | None:
    code = getattr(error, "error_code", None)
    if code is None:
        return None
    return str(getattr(code, "value", code))


class AzureBlobLeaseLock:
    """Lock a state blob by holding an infinite lease on it.

    Acquire fails immediately on contention; retrying is left to the caller.
    """

    backend = LockBackendKind.AZURE

    def __init__(
        self,
        config: AzureBlobLockConfig,
        *,
        client_factory: Callable[[AzureBlobLockConfig], BlobLeaseStore] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = config
        self._client_factory = client_factory or create_storage_client
        self._client: BlobLeaseStore | None = None
        self._lease_token: LeaseToken | None = None
        self.logger = with_log_context(
            logger or logging.getLogger(__name__),
            backend=self.backend.value,
            resource=self.describe(),
        )

    @classmethod
    def from_options(cls, options: Mapping[str, str]) -> AzureBlobLeaseLock:
        """Registry factory: validate options without touching the network."""
        return cls(AzureBlobLockConfig.from_options(options))

    @property
    def lease_token(self) -> LeaseToken | None:
        """Token of the lease this instance last acquired, until release()."""
        return self._lease_token

    def describe(self) -> str:
        c = self.config
        return f"azure blob lease on {c.storage_account_name}/{c.container_name}/{c.key}"

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return f"AzureBlobLeaseLock({self.config!r})"

    def _get_client(self) -> BlobLeaseStore:
        if self._client is None:
            self._client = self._client_factory(self.config)
        return self._client

    def acquire(self) -> LockGrant:
        container, key = self.config.container_name, self.config.key
        self.logger.info(f"Attempting to acquire lock for blob key {key}")

        client = self._get_client()

        try:
            exists = client.blob_exists(container, key)
        except AzureError as e:
            raise self._transport_error("check blob existence", e) from e
        if not exists:
            raise ResourceNotFoundError(
                f"lock blob {container}/{key} does not exist",
                resource=self.describe(),
                details="the state blob must exist before it can be locked",
            )

        proposed = LeaseToken(str(uuid.uuid4()))
        try:
            granted_id = client.acquire_lease(container, key, proposed.value)
        except HttpResponseError as e:
            if _error_code(e) == AZURE_LEASE_ALREADY_PRESENT or e.status_code == 409:
                self.logger.info("Blob is already leased by another holder")
                raise LockContentionError(self.describe(), details="blob already has an active lease") from e
            raise self._transport_error("acquire lease", e) from e
        except AzureError as e:
            raise self._transport_error("acquire lease", e) from e

        token = LeaseToken(granted_id or proposed.value)
        self._lease_token = token
        self.logger.info("Lock acquired")

        backup_name = None
        if self.config.backup:
            backup_name = self._backup_blob(client, token)

        return LockGrant(
            backend=self.backend,
            resource=self.describe(),
            acquired_at=rfc3339_now(),
            lease_token=token,
            backup_name=backup_name,
        )

    def release(self) -> None:
        container, key = self.config.container_name, self.config.key
        self.logger.info(f"Attempting to release lock for blob key {key}")

        client = self._get_client()

        try:
            client.break_lease(container, key)
        except AzureResourceNotFoundError as e:
            raise ResourceNotFoundError(
                f"lock blob {container}/{key} does not exist",
                resource=self.describe(),
            ) from e
        except HttpResponseError as e:
            if _error_code(e) != AZURE_LEASE_NOT_PRESENT:
                raise self._transport_error("break lease", e) from e
            self.logger.warning("Blob has no active lease; nothing to release")
        except AzureError as e:
            raise self._transport_error("break lease", e) from e

        self._lease_token = None
        self.logger.info("Lock released")

    def _backup_blob(self, client: BlobLeaseStore, token: LeaseToken) -> str:
        container, key = self.config.container_name, self.config.key
        backup_name = f"{key}.{rfc3339_now()}"
        self.logger.info(f"Backing up state blob to {backup_name}")
        try:
            data = client.read_blob(container, key)
            client.write_blob(container, backup_name, data)
        except (AzureError, OSError) as e:
            # The lease stays held; the caller decides whether to release.
            raise BackupFailedError(
                f"unable to backup state to {container}/{backup_name}",
                resource=self.describe(),
                lease_token=token,
                original_error=e,
            ) from e
        return backup_name

    def _transport_error(self, operation: str, error: AzureError) -> TransportError:
        return TransportError(
            "Azure Storage request failed",
            operation=operation,
            resource=self.describe(),
            status_code=getattr(error, "status_code", None),
            original_error=error,
        )
