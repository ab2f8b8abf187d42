"""Object storage contract and an in-process implementation."""

from __future__ import annotations

from typing import Protocol

from tailor.core.exceptions import StorageError


class ObjectStorage(Protocol):
  """Binary object store addressed by opaque keys."""

  async def upload(self, data: bytes, key: str, content_type: str) -> str:
    """Store ``data`` under ``key`` and return a URL for it."""

  async def download(self, key: str) -> bytes:
    """Return the bytes stored under ``key``."""

  async def delete(self, key: str) -> bool:
    """Delete ``key``, returning False when it did not exist."""


class InMemoryObjectStorage:
  """Dictionary-backed store for tests and local development."""

  def __init__(self, bucket: str = "tailor-resumes") -> None:
    self._bucket = bucket
    self._objects: dict[str, tuple[bytes, str]] = {}

  async def upload(self, data: bytes, key: str, content_type: str) -> str:
    self._objects[key] = (bytes(data), content_type)
    return self.url_for(key)

  async def download(self, key: str) -> bytes:
    stored = self._objects.get(key)
    if stored is None:
      raise StorageError(f"Object '{key}' not found.", key=key)
    return stored[0]

  async def delete(self, key: str) -> bool:
    return self._objects.pop(key, None) is not None

  def url_for(self, key: str) -> str:
    return f"memory://{self._bucket}/{key}"

  def content_type_of(self, key: str) -> str | None:
    stored = self._objects.get(key)
    return stored[1] if stored else None

  def keys(self) -> list[str]:
    return list(self._objects)
