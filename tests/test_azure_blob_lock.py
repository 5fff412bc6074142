"""Tests for the Azure Blob lease lock"""

from __future__ import annotations

import logging
import re
import threading
from unittest.mock import MagicMock, patch

import pytest
from azure.core.credentials import AzureNamedKeyCredential
from azure.core.exceptions import ServiceRequestError
from azure.storage.blob import StorageErrorCode

import statelock.core.locks.azure_blob as azure_blob
from statelock.core.config import AzureBlobLockConfig
from statelock.core.exceptions import (
    BackupFailedError,
    CredentialsMissingError,
    LockContentionError,
    ResourceNotFoundError,
    TransportError,
)
from statelock.core.locks.azure_blob import AzureBlobLeaseLock, AzureBlobStorageClient, create_storage_client
from statelock.core.locks.base import LeaseToken, Lock, LockBackendKind

from conftest import CONTAINER, STATE_BYTES, STATE_KEY, FakeBlobStore, make_http_error


class TestAcquire:
    """Acquire takes an infinite lease on the state blob"""

    def test_acquire_returns_grant_with_lease_token(self, make_azure_lock, blob_store) -> None:
        lock = make_azure_lock()

        grant = lock.acquire()

        assert grant.backend is LockBackendKind.AZURE
        assert isinstance(grant.lease_token, LeaseToken)
        assert blob_store.leases[(CONTAINER, STATE_KEY)] == grant.lease_token.value
        assert lock.lease_token == grant.lease_token
        assert grant.backup_name is None
        assert grant.resource == lock.describe()

    def test_lease_token_exports_arm_lease_id(self, make_azure_lock) -> None:
        grant = make_azure_lock().acquire()

        assert grant.lease_token.as_env() == {"ARM_LEASE_ID": grant.lease_token.value}

    def test_missing_blob_fails_without_lease_request(self, make_azure_lock) -> None:
        empty_store = FakeBlobStore()
        lock = make_azure_lock(store=empty_store)

        with pytest.raises(ResourceNotFoundError) as exc_info:
            lock.acquire()

        assert STATE_KEY in str(exc_info.value)
        assert empty_store.calls == ["blob_exists"]
        assert lock.lease_token is None

    def test_second_holder_gets_contention(self, make_azure_lock) -> None:
        first = make_azure_lock()
        second = make_azure_lock()
        first.acquire()

        with pytest.raises(LockContentionError) as exc_info:
            second.acquire()

        assert exc_info.value.attempts == 1
        assert second.lease_token is None
        assert first.lease_token is not None

    def test_acquire_release_acquire(self, make_azure_lock, blob_store) -> None:
        lock = make_azure_lock()

        first = lock.acquire()
        lock.release()
        second = lock.acquire()

        assert first.lease_token != second.lease_token
        assert blob_store.leases[(CONTAINER, STATE_KEY)] == second.lease_token.value

    def test_concurrent_acquires_have_exactly_one_winner(self, make_azure_lock) -> None:
        workers = 8
        locks = [make_azure_lock() for _ in range(workers)]
        barrier = threading.Barrier(workers)
        outcomes: list[str] = []
        outcomes_lock = threading.Lock()

        def worker(lock: AzureBlobLeaseLock) -> None:
            barrier.wait()
            try:
                lock.acquire()
                outcome = "acquired"
            except LockContentionError:
                outcome = "contention"
            with outcomes_lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=worker, args=(lock,)) for lock in locks]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert outcomes.count("acquired") == 1
        assert outcomes.count("contention") == workers - 1

    def test_enum_error_code_is_recognized_as_contention(self, make_azure_lock, blob_store) -> None:
        blob_store.fail_on["acquire_lease"] = make_http_error(
            409, StorageErrorCode("LeaseAlreadyPresent")
        )

        with pytest.raises(LockContentionError):
            make_azure_lock().acquire()

    def test_unexpected_service_error_is_transport_error(self, make_azure_lock, blob_store) -> None:
        blob_store.fail_on["acquire_lease"] = make_http_error(500, "InternalError")

        with pytest.raises(TransportError) as exc_info:
            make_azure_lock().acquire()

        assert exc_info.value.status_code == 500
        assert exc_info.value.operation == "acquire lease"

    def test_connection_failure_is_transport_error(self, make_azure_lock, blob_store) -> None:
        blob_store.fail_on["blob_exists"] = ServiceRequestError("connection refused")

        with pytest.raises(TransportError) as exc_info:
            make_azure_lock().acquire()

        assert "connection refused" in str(exc_info.value)

    def test_missing_access_key_raises_before_any_request(self, clean_env, azure_options) -> None:
        lock = AzureBlobLeaseLock(AzureBlobLockConfig.from_options(azure_options))

        with patch.object(azure_blob, "BlobServiceClient") as service_cls:
            with pytest.raises(CredentialsMissingError) as exc_info:
                lock.acquire()

        assert exc_info.value.source == "ARM_ACCESS_KEY"
        service_cls.assert_not_called()


class TestBackup:
    """backup=true copies the state blob once the lease is held"""

    def test_backup_writes_copy_with_timestamped_name(self, make_azure_lock, blob_store) -> None:
        lock = make_azure_lock(backup="true")

        grant = lock.acquire()

        assert re.fullmatch(re.escape(STATE_KEY) + r"\.\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", grant.backup_name)
        new_blobs = set(blob_store.blobs) - {(CONTAINER, STATE_KEY)}
        assert new_blobs == {(CONTAINER, grant.backup_name)}
        assert blob_store.blobs[(CONTAINER, grant.backup_name)] == STATE_BYTES

    def test_backup_name_uses_utc_timestamp(self, make_azure_lock, monkeypatch) -> None:
        monkeypatch.setattr(azure_blob, "rfc3339_now", lambda: "2024-03-01T09:15:00Z")

        grant = make_azure_lock(backup=True).acquire()

        assert grant.backup_name == f"{STATE_KEY}.2024-03-01T09:15:00Z"

    def test_backup_failure_leaves_lease_held(self, make_azure_lock, blob_store) -> None:
        blob_store.fail_on["write_blob"] = make_http_error(403, "AuthorizationPermissionMismatch")
        lock = make_azure_lock(backup=True)

        with pytest.raises(BackupFailedError) as exc_info:
            lock.acquire()

        assert exc_info.value.lease_token == lock.lease_token
        assert blob_store.leases[(CONTAINER, STATE_KEY)] == lock.lease_token.value

    def test_no_backup_by_default(self, make_azure_lock, blob_store) -> None:
        make_azure_lock().acquire()

        assert "write_blob" not in blob_store.calls
        assert list(blob_store.blobs) == [(CONTAINER, STATE_KEY)]


class TestRelease:
    """Release breaks the lease immediately"""

    def test_release_breaks_lease_and_clears_token(self, make_azure_lock, blob_store) -> None:
        lock = make_azure_lock()
        lock.acquire()

        lock.release()

        assert (CONTAINER, STATE_KEY) not in blob_store.leases
        assert lock.lease_token is None

    def test_release_without_lease_only_warns(self, make_azure_lock, caplog) -> None:
        lock = make_azure_lock()

        with caplog.at_level(logging.WARNING):
            lock.release()

        assert "no active lease" in caplog.text
        assert lock.lease_token is None

    def test_release_on_missing_blob_raises_resource_not_found(self, make_azure_lock) -> None:
        lock = make_azure_lock(store=FakeBlobStore())

        with pytest.raises(ResourceNotFoundError):
            lock.release()

    def test_release_can_break_another_instances_lease(self, make_azure_lock, blob_store) -> None:
        make_azure_lock().acquire()

        make_azure_lock().release()

        assert blob_store.leases == {}


class TestIdentity:
    def test_describe_names_account_container_and_key(self, make_azure_lock) -> None:
        lock = make_azure_lock()

        assert lock.describe() == f"azure blob lease on tfstateacct/{CONTAINER}/{STATE_KEY}"
        assert str(lock) == lock.describe()

    def test_satisfies_lock_protocol(self, make_azure_lock) -> None:
        assert isinstance(make_azure_lock(), Lock)

    def test_only_the_lease_backend_issues_tokens(self) -> None:
        assert LockBackendKind.AZURE.issues_lease_token
        assert not LockBackendKind.DYNAMODB.issues_lease_token
        assert LeaseToken.cleared_env() == {"ARM_LEASE_ID": ""}


class TestStorageClientAdapter:
    """AzureBlobStorageClient forwards to the SDK with the lease parameters"""

    @pytest.fixture
    def service(self):
        with patch.object(azure_blob, "BlobServiceClient") as service_cls:
            yield service_cls

    def test_uses_account_endpoint_and_shared_key(self, service) -> None:
        client = AzureBlobStorageClient("tfstateacct", "c2VjcmV0")

        assert client.account_url == "https://tfstateacct.blob.core.windows.net"
        kwargs = service.call_args.kwargs
        assert kwargs["account_url"] == client.account_url
        credential = kwargs["credential"]
        assert isinstance(credential, AzureNamedKeyCredential)
        assert credential.named_key.name == "tfstateacct"
        assert credential.named_key.key == "c2VjcmV0"

    def test_acquire_lease_requests_infinite_lease(self, service) -> None:
        blob_client = service.return_value.get_blob_client.return_value
        blob_client.acquire_lease.return_value = MagicMock(id="lease-123")
        client = AzureBlobStorageClient("tfstateacct", "key")

        lease_id = client.acquire_lease(CONTAINER, STATE_KEY, "lease-123")

        assert lease_id == "lease-123"
        service.return_value.get_blob_client.assert_called_with(CONTAINER, STATE_KEY)
        blob_client.acquire_lease.assert_called_once_with(lease_duration=-1, lease_id="lease-123")

    def test_break_lease_breaks_immediately(self, service) -> None:
        client = AzureBlobStorageClient("tfstateacct", "key")

        with patch.object(azure_blob, "BlobLeaseClient") as lease_cls:
            client.break_lease(CONTAINER, STATE_KEY)

        lease_cls.return_value.break_lease.assert_called_once_with(lease_break_period=0)

    def test_write_blob_never_overwrites(self, service) -> None:
        blob_client = service.return_value.get_blob_client.return_value
        client = AzureBlobStorageClient("tfstateacct", "key")

        client.write_blob(CONTAINER, "backup", b"data")

        blob_client.upload_blob.assert_called_once_with(b"data", overwrite=False)

    def test_read_blob_downloads_all_bytes(self, service) -> None:
        blob_client = service.return_value.get_blob_client.return_value
        blob_client.download_blob.return_value.readall.return_value = STATE_BYTES
        client = AzureBlobStorageClient("tfstateacct", "key")

        assert client.read_blob(CONTAINER, STATE_KEY) == STATE_BYTES

    def test_factory_reads_key_and_endpoint_override(self, service, clean_env, azure_options) -> None:
        clean_env.setenv("ARM_ACCESS_KEY", "  'c2VjcmV0'  ")
        clean_env.setenv("ARM_STORAGE_ENDPOINT", "http://127.0.0.1:10000/devstoreaccount1")

        client = create_storage_client(AzureBlobLockConfig.from_options(azure_options))

        assert client.account_url == "http://127.0.0.1:10000/devstoreaccount1"
        assert service.call_args.kwargs["credential"].named_key.key == "c2VjcmV0"
