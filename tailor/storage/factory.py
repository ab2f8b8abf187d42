"""Object storage selection from settings."""

from __future__ import annotations

from tailor.config import Settings
from tailor.storage.base import InMemoryObjectStorage, ObjectStorage
from tailor.storage.gcs import GcsObjectStorage


def build_object_storage(settings: Settings) -> ObjectStorage:
  """Create the storage backend named by ``TAILOR_STORAGE_PROVIDER``."""
  if settings.storage_provider == "gcs":
    return GcsObjectStorage(bucket_name=settings.storage_bucket, project_id=settings.gcp_project_id, storage_host=settings.gcs_storage_host)
  return InMemoryObjectStorage(bucket=settings.storage_bucket)
