"""Error taxonomy for the customization pipeline."""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
  """Base class for failures raised while processing a customization."""

  code = "PIPELINE_ERROR"

  def __init__(self, message: str, **context: Any) -> None:
    super().__init__(message)
    self.message = message
    self.context = context

  def to_dict(self) -> dict[str, Any]:
    """Return a JSON-safe description of the failure for job results and logs."""
    payload: dict[str, Any] = {"code": self.code, "message": self.message}
    if self.context:
      payload["context"] = {key: _coerce_json_safe(value) for key, value in self.context.items()}
    return payload


class NotFoundError(PipelineError):
  """Raised when the customization record referenced by a job does not exist."""

  code = "NOT_FOUND"


class ValidationError(PipelineError):
  """Raised when a submission is rejected before any job is queued."""

  code = "VALIDATION_ERROR"


class ConversionError(PipelineError):
  """Raised when the source document cannot be converted to text."""

  code = "CONVERSION_ERROR"


class AIServiceError(PipelineError):
  """Raised on generation transport failures and unusable replies."""

  code = "AI_SERVICE_ERROR"


class RenderError(PipelineError):
  """Raised when the renderer fails to produce document bytes."""

  code = "RENDER_ERROR"


class StorageError(PipelineError):
  """Raised when an object storage upload, download or delete fails."""

  code = "STORAGE_ERROR"


class UnknownError(PipelineError):
  """Raised for failures that fit no other category."""

  code = "UNKNOWN_ERROR"


def coerce_pipeline_error(exc: BaseException) -> PipelineError:
  """Return the exception itself when categorized, otherwise wrap it as UnknownError."""
  if isinstance(exc, PipelineError):
    return exc
  message = str(exc) or type(exc).__name__
  wrapped = UnknownError(message, error_type=type(exc).__name__)
  wrapped.__cause__ = exc
  return wrapped


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  return str(value)
