"""Google Cloud Storage backend, with emulator support for local development."""

from __future__ import annotations

import logging
import os
from urllib.parse import quote, urlparse, urlunparse

from google.api_core import exceptions as gcs_exceptions
from google.auth.credentials import AnonymousCredentials
from google.cloud import storage
from starlette.concurrency import run_in_threadpool

from tailor.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class GcsObjectStorage:
  """Store source and rendered documents in a single GCS bucket."""

  def __init__(self, *, bucket_name: str, project_id: str | None = None, storage_host: str | None = None) -> None:
    self._bucket_name = bucket_name
    self._storage_host = storage_host
    if storage_host:
      emulator_endpoint = _normalize_emulator_endpoint(storage_host)
      os.environ["STORAGE_EMULATOR_HOST"] = emulator_endpoint
      self._public_base = emulator_endpoint
      self._client = storage.Client(project=project_id or "local-dev", credentials=AnonymousCredentials(), client_options={"api_endpoint": emulator_endpoint})
    else:
      self._public_base = "https://storage.googleapis.com"
      self._client = storage.Client(project=project_id)

  @property
  def bucket_name(self) -> str:
    return self._bucket_name

  async def ensure_bucket(self) -> None:
    """Create the bucket when missing; only done against the emulator."""
    if not self._storage_host:
      return
    bucket = self._client.bucket(self._bucket_name)

    def _create_if_missing() -> None:
      if not bucket.exists(client=self._client):
        self._client.create_bucket(bucket)

    await run_in_threadpool(_create_if_missing)

  async def upload(self, data: bytes, key: str, content_type: str) -> str:
    blob = self._client.bucket(self._bucket_name).blob(key)
    blob.content_type = content_type
    try:
      await run_in_threadpool(blob.upload_from_string, data, content_type)
    except gcs_exceptions.GoogleAPIError as exc:
      raise StorageError(f"Failed to upload '{key}': {exc}", key=key, bucket=self._bucket_name) from exc
    logger.info("Uploaded %s (%d bytes) to bucket %s", key, len(data), self._bucket_name)
    return self.url_for(key)

  async def download(self, key: str) -> bytes:
    blob = self._client.bucket(self._bucket_name).blob(key)
    try:
      return await run_in_threadpool(blob.download_as_bytes)
    except gcs_exceptions.NotFound as exc:
      raise StorageError(f"Object '{key}' not found.", key=key, bucket=self._bucket_name) from exc
    except gcs_exceptions.GoogleAPIError as exc:
      raise StorageError(f"Failed to download '{key}': {exc}", key=key, bucket=self._bucket_name) from exc

  async def delete(self, key: str) -> bool:
    blob = self._client.bucket(self._bucket_name).blob(key)
    try:
      await run_in_threadpool(blob.delete)
    except gcs_exceptions.NotFound:
      return False
    except gcs_exceptions.GoogleAPIError as exc:
      raise StorageError(f"Failed to delete '{key}': {exc}", key=key, bucket=self._bucket_name) from exc
    return True

  def url_for(self, key: str) -> str:
    return f"{self._public_base}/{self._bucket_name}/{quote(key)}"


def _normalize_emulator_endpoint(raw_endpoint: str) -> str:
  """Keep only scheme, host and port of the emulator endpoint."""
  parsed = urlparse(raw_endpoint)
  if not parsed.scheme or not parsed.netloc:
    return raw_endpoint.rstrip("/")
  return urlunparse((parsed.scheme, parsed.netloc, "", "", "", "")).rstrip("/")
