"""
Blob storage for uploaded file bytes.

Two backends: a local directory (development, tests) and Supabase Storage.
"""

import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from storage3.exceptions import StorageApiError
from supabase import Client, create_client

from finaudit.core.errors import BlobStoreError
from finaudit.observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BUCKET = "financial-records"


def build_storage_path(organization_id: str, file_name: str) -> str:
    """Blob key for a new upload: "<org>/<uuid>-<file name>"."""
    safe_name = (file_name or "").replace("\\", "/").split("/")[-1]
    return f"{organization_id}/{uuid.uuid4()}-{safe_name}"


class BlobStore(ABC):
    """
    Abstract blob store holding raw file bytes by path.
    """

    @abstractmethod
    def upload(self, path: str, data: bytes, content_type: str | None = None) -> None:
        """Store bytes under path; fails if the path already exists."""
        pass

    @abstractmethod
    def download(self, path: str) -> bytes:
        """Return the bytes stored under path."""
        pass

    @abstractmethod
    def remove(self, path: str) -> None:
        """Delete the object at path."""
        pass


class LocalBlobStore(BlobStore):
    """
    Blob store backed by a directory on the local filesystem.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise BlobStoreError(f"Blob path escapes the store root: {path}", path=path)
        return target

    def upload(self, path: str, data: bytes, content_type: str | None = None) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "xb") as f:
                f.write(data)
        except FileExistsError as e:
            raise BlobStoreError(f"Storage upload failed: object already exists: {path}", path=path) from e
        except OSError as e:
            raise BlobStoreError(f"Storage upload failed: {e}", path=path) from e

    def download(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise BlobStoreError(f"Failed to download file: {e}", path=path) from e

    def remove(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink()
        except OSError as e:
            raise BlobStoreError(f"Failed to remove file: {e}", path=path) from e


class SupabaseBlobStore(BlobStore):
    """
    Blob store backed by a Supabase Storage bucket.
    """

    def __init__(self, client: Client, bucket: str = DEFAULT_BUCKET):
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_env(cls) -> "SupabaseBlobStore":
        """
        Build from SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY and STORAGE_BUCKET.
        """
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        if not url or not key:
            raise RuntimeError("Supabase not configured (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY).")
        return cls(create_client(url, key), os.getenv("STORAGE_BUCKET", DEFAULT_BUCKET))

    def upload(self, path: str, data: bytes, content_type: str | None = None) -> None:
        file_options = {"upsert": "false"}
        if content_type:
            file_options["content-type"] = content_type
        try:
            self.client.storage.from_(self.bucket).upload(path, data, file_options=file_options)
        except StorageApiError as e:
            raise BlobStoreError(f"Storage upload failed: {getattr(e, 'message', e)}", path=path) from e

    def download(self, path: str) -> bytes:
        try:
            return self.client.storage.from_(self.bucket).download(path)
        except StorageApiError as e:
            raise BlobStoreError(f"Failed to download file: {getattr(e, 'message', e)}", path=path) from e

    def remove(self, path: str) -> None:
        try:
            self.client.storage.from_(self.bucket).remove([path])
        except StorageApiError as e:
            raise BlobStoreError(f"Failed to remove file: {getattr(e, 'message', e)}", path=path) from e


def create_blob_store_from_env() -> BlobStore:
    """
    Select the backend from BLOB_BACKEND ("local" or "supabase").

    The local backend stores files under BLOB_ROOT (default ./blobs).
    """
    backend = os.getenv("BLOB_BACKEND", "local").lower()
    if backend == "supabase":
        return SupabaseBlobStore.from_env()
    if backend == "local":
        return LocalBlobStore(os.getenv("BLOB_ROOT", "blobs"))
    raise ValueError(f"Unknown BLOB_BACKEND: {backend}")
