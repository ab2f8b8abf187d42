"""Object storage backends."""

from tailor.storage.base import InMemoryObjectStorage, ObjectStorage
from tailor.storage.factory import build_object_storage
from tailor.storage.gcs import GcsObjectStorage

__all__ = ["GcsObjectStorage", "InMemoryObjectStorage", "ObjectStorage", "build_object_storage"]
