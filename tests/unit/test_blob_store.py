"""
Unit tests for blob storage backends.
"""

import pytest
from unittest.mock import MagicMock

from storage3.exceptions import StorageApiError

from finaudit.core.errors import BlobStoreError
from finaudit.store.blob_store import (
    LocalBlobStore,
    SupabaseBlobStore,
    build_storage_path,
    create_blob_store_from_env,
)


class TestBuildStoragePath:
    """Tests for upload key generation"""

    def test_path_layout(self):
        path = build_storage_path("org_1", "ledger.csv")
        org, name = path.split("/")

        assert org == "org_1"
        assert name.endswith("-ledger.csv")
        assert len(name) == 36 + 1 + len("ledger.csv")

    def test_paths_are_unique(self):
        assert build_storage_path("org_1", "a.csv") != build_storage_path("org_1", "a.csv")

    def test_directory_components_are_dropped(self):
        assert build_storage_path("org_1", "../../etc/passwd").endswith("-passwd")
        assert build_storage_path("org_1", "C:\\data\\q2.xlsx").endswith("-q2.xlsx")


class TestLocalBlobStore:
    """Tests for LocalBlobStore"""

    def test_round_trip(self, tmp_path):
        store = LocalBlobStore(tmp_path)
        store.upload("org_1/abc-ledger.csv", b"id\nT1\n")

        assert store.download("org_1/abc-ledger.csv") == b"id\nT1\n"
        assert (tmp_path / "org_1" / "abc-ledger.csv").exists()

    def test_upload_does_not_overwrite(self, tmp_path):
        store = LocalBlobStore(tmp_path)
        store.upload("org_1/a.csv", b"first")

        with pytest.raises(BlobStoreError) as exc_info:
            store.upload("org_1/a.csv", b"second")
        assert "already exists" in str(exc_info.value)
        assert store.download("org_1/a.csv") == b"first"

    def test_remove(self, tmp_path):
        store = LocalBlobStore(tmp_path)
        store.upload("org_1/a.csv", b"x")
        store.remove("org_1/a.csv")

        with pytest.raises(BlobStoreError) as exc_info:
            store.download("org_1/a.csv")
        assert exc_info.value.path == "org_1/a.csv"

    def test_remove_missing(self, tmp_path):
        with pytest.raises(BlobStoreError):
            LocalBlobStore(tmp_path).remove("org_1/missing.csv")

    def test_path_escape_rejected(self, tmp_path):
        store = LocalBlobStore(tmp_path / "blobs")
        with pytest.raises(BlobStoreError):
            store.upload("../outside.csv", b"x")


class TestSupabaseBlobStore:
    """Tests for SupabaseBlobStore against a mocked client"""

    @pytest.fixture
    def client(self):
        return MagicMock()

    def test_upload(self, client):
        SupabaseBlobStore(client).upload("org_1/a.csv", b"data", "text/csv")

        client.storage.from_.assert_called_with("financial-records")
        client.storage.from_.return_value.upload.assert_called_once_with(
            "org_1/a.csv",
            b"data",
            file_options={"upsert": "false", "content-type": "text/csv"},
        )

    def test_download(self, client):
        client.storage.from_.return_value.download.return_value = b"bytes"
        assert SupabaseBlobStore(client, bucket="audits").download("org_1/a.csv") == b"bytes"
        client.storage.from_.assert_called_with("audits")

    def test_remove(self, client):
        SupabaseBlobStore(client).remove("org_1/a.csv")
        client.storage.from_.return_value.remove.assert_called_once_with(["org_1/a.csv"])

    def test_storage_errors_are_translated(self, client):
        client.storage.from_.return_value.download.side_effect = StorageApiError(
            "Object not found", "not_found", 404
        )

        with pytest.raises(BlobStoreError) as exc_info:
            SupabaseBlobStore(client).download("org_1/a.csv")
        assert "Failed to download file" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, StorageApiError)

    def test_from_env_requires_credentials(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)

        with pytest.raises(RuntimeError):
            SupabaseBlobStore.from_env()


class TestCreateBlobStoreFromEnv:
    """Tests for backend selection"""

    def test_local_backend(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BLOB_BACKEND", "local")
        monkeypatch.setenv("BLOB_ROOT", str(tmp_path))

        store = create_blob_store_from_env()
        assert isinstance(store, LocalBlobStore)
        assert store.root == tmp_path

    def test_default_is_local(self, monkeypatch):
        monkeypatch.delenv("BLOB_BACKEND", raising=False)
        assert isinstance(create_blob_store_from_env(), LocalBlobStore)

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setenv("BLOB_BACKEND", "s3")
        with pytest.raises(ValueError):
            create_blob_store_from_env()
