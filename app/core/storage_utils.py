# app/core/storage_utils.py
import logging
import random
import time
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Protocol

from app.core.config import get_settings
from app.core.supabase_client import supabase_admin

settings = get_settings()
logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    """
    Opaque file store for product images.

    - save() returns the URL stored in product_images.image_url
    - delete() removes the file behind a URL; URLs that do not belong
      to this store (placeholders, seeded static assets) are ignored
    """

    def save(self, filename: str, file_bytes: bytes, content_type: str) -> str: ...

    def delete(self, url: str) -> None: ...


def generate_filename(original_name: str) -> str:
    """
    Build a collision-resistant filename that keeps the original stem.

    Example:
        "red shoe.png" -> "red-shoe-1718000000000-483920117.png"
    """
    path = PurePosixPath(original_name or "image")
    stem = "-".join(path.stem.split()) or "image"
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{stem}-{unique_suffix}{path.suffix.lower()}"


class LocalBlobStore:
    """
    Store files on local disk under `root`, served as `<url_prefix>/<name>`.
    """

    def __init__(self, root: str | Path, url_prefix: str):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def save(self, filename: str, file_bytes: bytes, content_type: str) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        name = generate_filename(filename)
        (self.root / name).write_bytes(file_bytes)
        return f"{self.url_prefix}/{name}"

    def path_for(self, url: str) -> Path | None:
        """Map a URL back to its file, or None if the URL is not ours."""
        prefix = self.url_prefix + "/"
        if not url or not url.startswith(prefix):
            return None
        name = PurePosixPath(url[len(prefix):]).name
        return self.root / name

    def delete(self, url: str) -> None:
        path = self.path_for(url)
        if path is not None:
            path.unlink()


class SupabaseBlobStore:
    """
    Store files in a Supabase Storage bucket and hand out public URLs.
    """

    def __init__(self, bucket: str, folder: str = "products"):
        self.bucket = bucket
        self.folder = folder

    def save(self, filename: str, file_bytes: bytes, content_type: str) -> str:
        path = f"{self.folder}/{generate_filename(filename)}"
        storage = supabase_admin().storage.from_(self.bucket)
        storage.upload(path, file_bytes, {"content-type": content_type, "upsert": "true"})
        return storage.get_public_url(path)

    def extract_path_from_public_url(self, url: str) -> str | None:
        """
        Given a public URL, extract the object path relative to the bucket.

        Example:
            https://<proj>.supabase.co/storage/v1/object/public/assets/products/a.png
            -> 'products/a.png'
        """
        marker = f"/storage/v1/object/public/{self.bucket}/"
        idx = url.find(marker)
        if idx == -1:
            return None
        return url[idx + len(marker):].split("?", 1)[0]

    def delete(self, url: str) -> None:
        path = self.extract_path_from_public_url(url)
        if path:
            supabase_admin().storage.from_(self.bucket).remove([path])


def discard_blobs(store: BlobStore, urls: list[str]) -> None:
    """
    Best-effort deletion of stored files.

    Failures are logged and never raised: the database is the source of
    truth and a stray file must not fail the request that produced it.
    """
    for url in urls:
        try:
            store.delete(url)
        except Exception:
            logger.warning("Error deleting image file %s", url, exc_info=True)


@lru_cache
def get_blob_store() -> BlobStore:
    """
    FastAPI dependency / factory for the configured blob store.

    STORAGE_BACKEND:
      - "local"    : files under UPLOAD_DIR, URLs under UPLOAD_URL_PREFIX
      - "supabase" : public bucket SUPABASE_BUCKET
    """
    if settings.STORAGE_BACKEND == "supabase":
        return SupabaseBlobStore(settings.SUPABASE_BUCKET)
    return LocalBlobStore(settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX)
