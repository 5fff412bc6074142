"""Pytest configuration and fixtures for statelock tests"""

from __future__ import annotations

import threading

import boto3
import pytest
from azure.core.exceptions import HttpResponseError, ResourceExistsError
from azure.core.exceptions import ResourceNotFoundError as AzureResourceNotFoundError

from statelock.core.config import AzureBlobLockConfig, DynamoDBLockConfig
from statelock.core.locks.azure_blob import AzureBlobLeaseLock
from statelock.core.locks.dynamodb import DynamoDBLock

CONTAINER = "tfstate"
STATE_KEY = "prod.terraform.tfstate"
STATE_BYTES = b'{"version": 4, "serial": 12}'

_ENV_VARS = (
    "ARM_ACCESS_KEY",
    "ARM_LEASE_ID",
    "ARM_STORAGE_ENDPOINT",
    "LOG_LEVEL",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "AWS_PROFILE",
)


def make_http_error(status_code: int, error_code: str | None, error_cls: type = HttpResponseError) -> HttpResponseError:
    """Build an SDK error the way azure-storage-blob surfaces service failures."""
    error = error_cls(message=f"{status_code} {error_code}")
    error.status_code = status_code
    error.error_code = error_code
    return error


class FakeBlobStore:
    """In-memory, thread-safe stand-in for the Azure blob service.

    Lease semantics follow the service: one active lease per blob, a second
    acquire gets 409 LeaseAlreadyPresent, breaking an unleased blob gets 409
    LeaseNotPresentWithLeaseOperation.
    """

    def __init__(self, blobs: dict[tuple[str, str], bytes] | None = None):
        self._lock = threading.Lock()
        self.blobs: dict[tuple[str, str], bytes] = dict(blobs or {})
        self.leases: dict[tuple[str, str], str] = {}
        self.calls: list[str] = []
        self.fail_on: dict[str, Exception] = {}

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise self.fail_on[operation]

    def _require_blob(self, container: str, key: str) -> None:
        if (container, key) not in self.blobs:
            raise make_http_error(404, "BlobNotFound", AzureResourceNotFoundError)

    def blob_exists(self, container: str, key: str) -> bool:
        with self._lock:
            self._record("blob_exists")
            return (container, key) in self.blobs

    def acquire_lease(self, container: str, key: str, lease_id: str) -> str:
        with self._lock:
            self._record("acquire_lease")
            self._require_blob(container, key)
            if (container, key) in self.leases:
                raise make_http_error(409, "LeaseAlreadyPresent")
            self.leases[(container, key)] = lease_id
            return lease_id

    def break_lease(self, container: str, key: str) -> None:
        with self._lock:
            self._record("break_lease")
            self._require_blob(container, key)
            if (container, key) not in self.leases:
                raise make_http_error(409, "LeaseNotPresentWithLeaseOperation")
            del self.leases[(container, key)]

    def read_blob(self, container: str, key: str) -> bytes:
        with self._lock:
            self._record("read_blob")
            self._require_blob(container, key)
            return self.blobs[(container, key)]

    def write_blob(self, container: str, name: str, data: bytes) -> None:
        with self._lock:
            self._record("write_blob")
            if (container, name) in self.blobs:
                raise make_http_error(409, "BlobAlreadyExists", ResourceExistsError)
            self.blobs[(container, name)] = data


@pytest.fixture
def clean_env(monkeypatch):
    """Remove credential and logging variables so tests see a bare environment"""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def azure_options():
    return {
        "storage_account_name": "tfstateacct",
        "container_name": CONTAINER,
        "key": STATE_KEY,
    }


@pytest.fixture
def blob_store():
    """Fake storage account holding a single state blob"""
    return FakeBlobStore({(CONTAINER, STATE_KEY): STATE_BYTES})


@pytest.fixture
def make_azure_lock(blob_store, azure_options):
    """Factory for lease locks that share the fake storage account"""

    def _make(store: FakeBlobStore | None = None, **overrides) -> AzureBlobLeaseLock:
        config = AzureBlobLockConfig.from_options({**azure_options, **overrides})
        target = store if store is not None else blob_store
        return AzureBlobLeaseLock(config, client_factory=lambda _config: target)

    return _make


@pytest.fixture
def dynamodb_client():
    """Real boto3 client with dummy credentials; pair with botocore.stub.Stubber"""
    return boto3.client(
        "dynamodb",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def make_dynamodb_lock(dynamodb_client):
    def _make(**options) -> DynamoDBLock:
        config = DynamoDBLockConfig.from_options({"state_file_id": "prod/network", **options})
        return DynamoDBLock(config, client_factory=lambda _config: dynamodb_client)

    return _make
