"""Identifier utilities."""

from __future__ import annotations

import secrets
import uuid
from pathlib import PurePosixPath


def generate_job_id() -> str:
  """Return a new queue job identifier."""
  return str(uuid.uuid4())


def generate_record_id() -> str:
  """Return a new customization record identifier."""
  return str(uuid.uuid4())


def generate_object_key(owner_id: str, filename: str) -> str:
  """Return a fresh storage key scoped to the owner, keeping the filename extension."""
  extension = PurePosixPath(filename).suffix.lower()
  return f"{owner_id}/{secrets.token_hex(16)}{extension}"
