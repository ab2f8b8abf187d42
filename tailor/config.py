"""Worker configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from tailor.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_BROKERS = {"memory", "postgres"}
_STORAGE_PROVIDERS = {"memory", "gcs"}
_AI_PROVIDERS = {"webhook", "openrouter"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the customization worker."""

  environment: str
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  pg_dsn: str | None
  pg_connect_timeout: int
  queue_name: str
  queue_broker: str
  job_max_attempts: int
  job_backoff_base_ms: int
  job_remove_on_complete: bool
  job_remove_on_fail: bool
  failed_job_retention_seconds: int
  job_stall_timeout_seconds: int
  worker_concurrency: int
  worker_poll_interval_seconds: float
  storage_provider: str
  storage_bucket: str
  gcs_storage_host: str | None
  gcp_project_id: str | None
  ai_provider: str
  webhook_url: str | None
  webhook_path: str
  ai_timeout_seconds: float
  ai_max_retries: int
  ai_retry_initial_backoff_ms: int
  ai_retry_max_backoff_ms: int
  openrouter_api_key: str | None
  openrouter_base_url: str
  openrouter_model: str
  renderer_page_format: str


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None or raw.strip() == "":
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _non_negative_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value < 0:
    raise ValueError(f"{name} must be zero or a positive integer.")
  return value


def _choice(name: str, default: str, allowed: set[str]) -> str:
  value = (os.getenv(name) or default).strip().lower()
  if value not in allowed:
    raise ValueError(f"{name} must be one of: {', '.join(sorted(allowed))}.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("TAILOR_ENV", "development").lower()
  debug = _parse_bool(os.getenv("TAILOR_DEBUG"))

  log_max_bytes = _positive_int("TAILOR_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = _non_negative_int("TAILOR_LOG_BACKUP_COUNT", "10")

  # Job-level retry budget: a full pipeline re-run per attempt.
  job_max_attempts = _positive_int("TAILOR_JOB_MAX_ATTEMPTS", "3")
  job_backoff_base_ms = _non_negative_int("TAILOR_JOB_BACKOFF_BASE_MS", "2000")
  failed_job_retention_seconds = _non_negative_int("TAILOR_FAILED_JOB_RETENTION_SECONDS", "86400")
  job_stall_timeout_seconds = _positive_int("TAILOR_JOB_STALL_TIMEOUT_SECONDS", "30")

  worker_concurrency = _positive_int("TAILOR_WORKER_CONCURRENCY", "1")
  worker_poll_interval_seconds = float(os.getenv("TAILOR_WORKER_POLL_INTERVAL_SECONDS", "1.0"))
  if worker_poll_interval_seconds <= 0:
    raise ValueError("TAILOR_WORKER_POLL_INTERVAL_SECONDS must be positive.")

  queue_broker = _choice("TAILOR_QUEUE_BROKER", "memory", _BROKERS)
  pg_dsn = os.getenv("TAILOR_PG_DSN") or os.getenv("DATABASE_URL")
  if queue_broker == "postgres" and not pg_dsn:
    raise ValueError("TAILOR_PG_DSN must be set when TAILOR_QUEUE_BROKER is 'postgres'.")

  storage_provider = _choice("TAILOR_STORAGE_PROVIDER", "memory", _STORAGE_PROVIDERS)

  # Transport-level retry budget: nested inside one job attempt.
  ai_provider = _choice("TAILOR_AI_PROVIDER", "webhook", _AI_PROVIDERS)
  ai_timeout_seconds = float(os.getenv("TAILOR_AI_TIMEOUT_SECONDS", "120"))
  if ai_timeout_seconds <= 0:
    raise ValueError("TAILOR_AI_TIMEOUT_SECONDS must be positive.")
  ai_max_retries = _non_negative_int("TAILOR_AI_MAX_RETRIES", "3")
  ai_retry_initial_backoff_ms = _non_negative_int("TAILOR_AI_RETRY_INITIAL_BACKOFF_MS", "1000")
  ai_retry_max_backoff_ms = _non_negative_int("TAILOR_AI_RETRY_MAX_BACKOFF_MS", "30000")

  webhook_url = _optional_str(os.getenv("TAILOR_WEBHOOK_URL"))
  if ai_provider == "webhook" and environment in {"production", "prod"} and not webhook_url:
    raise ValueError("TAILOR_WEBHOOK_URL must be set when TAILOR_AI_PROVIDER is 'webhook'.")

  openrouter_api_key = _optional_str(os.getenv("OPENROUTER_API_KEY"))
  if ai_provider == "openrouter" and not openrouter_api_key:
    raise ValueError("OPENROUTER_API_KEY must be set when TAILOR_AI_PROVIDER is 'openrouter'.")

  return Settings(
    environment=environment,
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    pg_dsn=pg_dsn,
    pg_connect_timeout=_positive_int("TAILOR_PG_CONNECT_TIMEOUT", "5"),
    queue_name=(os.getenv("TAILOR_QUEUE_NAME") or "resume-customization").strip(),
    queue_broker=queue_broker,
    job_max_attempts=job_max_attempts,
    job_backoff_base_ms=job_backoff_base_ms,
    job_remove_on_complete=_parse_bool(os.getenv("TAILOR_JOB_REMOVE_ON_COMPLETE"), default=True),
    job_remove_on_fail=_parse_bool(os.getenv("TAILOR_JOB_REMOVE_ON_FAIL"), default=False),
    failed_job_retention_seconds=failed_job_retention_seconds,
    job_stall_timeout_seconds=job_stall_timeout_seconds,
    worker_concurrency=worker_concurrency,
    worker_poll_interval_seconds=worker_poll_interval_seconds,
    storage_provider=storage_provider,
    storage_bucket=(os.getenv("TAILOR_STORAGE_BUCKET") or "tailor-resumes").strip(),
    gcs_storage_host=_optional_str(os.getenv("GCS_STORAGE_HOST")),
    gcp_project_id=_optional_str(os.getenv("GCP_PROJECT_ID")),
    ai_provider=ai_provider,
    webhook_url=webhook_url,
    webhook_path=(os.getenv("TAILOR_WEBHOOK_PATH") or "customize-resume-ai").strip().strip("/"),
    ai_timeout_seconds=ai_timeout_seconds,
    ai_max_retries=ai_max_retries,
    ai_retry_initial_backoff_ms=ai_retry_initial_backoff_ms,
    ai_retry_max_backoff_ms=ai_retry_max_backoff_ms,
    openrouter_api_key=openrouter_api_key,
    openrouter_base_url=(os.getenv("OPENROUTER_BASE_URL") or "https://openrouter.ai/api/v1").strip(),
    openrouter_model=(os.getenv("TAILOR_OPENROUTER_MODEL") or "deepseek/deepseek-r1-distill-llama-70b").strip(),
    renderer_page_format=(os.getenv("TAILOR_RENDERER_PAGE_FORMAT") or "A4").strip(),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring worker runtime configuration."""
  debug = _parse_bool(os.getenv("TAILOR_DEBUG"))
  pg_connect_timeout = _positive_int("TAILOR_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = os.getenv("TAILOR_PG_DSN") or os.getenv("DATABASE_URL")

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)
