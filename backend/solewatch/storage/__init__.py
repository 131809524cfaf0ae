"""Document storage: blob stores and the repositories built on them."""

from solewatch.storage.blob_store import BlobRef, BlobStore, LocalBlobStore
from solewatch.storage.repositories import AlertRepository, CatalogRepository

__all__ = [
    "BlobRef",
    "BlobStore",
    "LocalBlobStore",
    "AlertRepository",
    "CatalogRepository",
]
