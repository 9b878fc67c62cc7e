"""Configuration management for the reel ingestion service.

This module provides centralized configuration loading from environment variables.
Required values are cached on first access; optional values are read on every call
so tests can override them with monkeypatch.

Environment Variables:
    APIFY_TOKEN: Apify API token for the reel and post scraper actors (required)
    OPENAI_API_KEY: OpenAI API key for transcription and summarization (required)
    TRANSCRIPTION_MODEL: OpenAI transcription model (default: whisper-1)
    SUMMARIZATION_MODEL: OpenAI chat model for summaries (default: gpt-4o-mini)
    OCR_MODEL: OpenAI vision model for image text extraction (default: gpt-4o)
    RESULT_STORE: "local" or "supabase" (default: local)
    DATA_DIR / TEMP_DIR: Local result and scratch directories
    SUPABASE_URL / SUPABASE_SERVICE_KEY / SUPABASE_BUCKET: Supabase Storage settings

Usage:
    from app.config import get_transcription_model, get_apify_token

    model = get_transcription_model()  # "whisper-1" unless overridden
    token = get_apify_token()  # Raises ConfigurationError if APIFY_TOKEN not set
"""

import os
from functools import lru_cache
from pathlib import Path

import structlog

from app.exceptions import ConfigurationError

log = structlog.get_logger(__name__)

DEFAULT_APIFY_ACTOR_ID = "apify~instagram-reel-scraper"
DEFAULT_APIFY_POST_ACTOR_ID = "apify~instagram-post-scraper"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"
DEFAULT_SUMMARIZATION_MODEL = "gpt-4o-mini"
DEFAULT_OCR_MODEL = "gpt-4o"
DEFAULT_SUPABASE_BUCKET = "reel-results"
DEFAULT_FRONTEND_ORIGIN = "http://localhost:5173"

# Whisper rejects uploads above 25MB, downloads use the same ceiling
DEFAULT_MAX_MEDIA_BYTES = 25 * 1024 * 1024
DEFAULT_DOWNLOAD_TIMEOUT_SECONDS = 120
DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024
DEFAULT_APIFY_WAIT_SECONDS = 300

DEFAULT_RATE_LIMIT_MAX_REQUESTS = 10
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 60

RESULT_STORE_LOCAL = "local"
RESULT_STORE_SUPABASE = "supabase"


def _get_int(name: str, default: int, minimum: int, maximum: int) -> int:
    """Read an integer environment variable, clamped to [minimum, maximum].

    Invalid values fall back to the default with a warning.
    """
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        log.warning("invalid_integer_setting", setting=name, value=raw, using_default=default)
        return default
    return max(minimum, min(maximum, value))


@lru_cache
def get_apify_token() -> str:
    """Get Apify API token from environment.

    Returns:
        Apify token string.

    Raises:
        ConfigurationError: If APIFY_TOKEN not set.
    """
    token = os.getenv("APIFY_TOKEN")
    if not token:
        raise ConfigurationError("APIFY_TOKEN environment variable is required")
    return token


def get_apify_actor_id() -> str:
    """Get the Apify actor used to scrape reels (default: apify~instagram-reel-scraper)."""
    return os.getenv("APIFY_ACTOR_ID", DEFAULT_APIFY_ACTOR_ID)


def get_apify_wait_seconds() -> int:
    """Get the maximum time the scraper actor may run, in seconds (10-600)."""
    return _get_int("APIFY_WAIT_SECONDS", DEFAULT_APIFY_WAIT_SECONDS, 10, 600)


@lru_cache
def get_openai_api_key() -> str:
    """Get OpenAI API key from environment.

    Raises:
        ConfigurationError: If OPENAI_API_KEY not set.
    """
    key = os.getenv("OPENAI_API_KEY")
    if not key:
        raise ConfigurationError("OPENAI_API_KEY environment variable is required")
    return key


def get_transcription_model() -> str:
    return os.getenv("TRANSCRIPTION_MODEL", DEFAULT_TRANSCRIPTION_MODEL)


def get_summarization_model() -> str:
    return os.getenv("SUMMARIZATION_MODEL", DEFAULT_SUMMARIZATION_MODEL)


def get_result_store_backend() -> str:
    """Get the result store backend name.

    Environment Variable:
        RESULT_STORE: "local" (JSON files under DATA_DIR) or "supabase"

    Returns:
        Backend name, lowercased. Unknown values fall back to "local".
    """
    backend = os.getenv("RESULT_STORE", RESULT_STORE_LOCAL).strip().lower()
    if backend not in (RESULT_STORE_LOCAL, RESULT_STORE_SUPABASE):
        log.warning("unknown_result_store", value=backend, using_default=RESULT_STORE_LOCAL)
        return RESULT_STORE_LOCAL
    return backend


def get_data_dir() -> Path:
    return Path(os.getenv("DATA_DIR", "data"))


def get_temp_dir() -> Path:
    return Path(os.getenv("TEMP_DIR", "temp"))


def get_supabase_url() -> str:
    """Get Supabase project URL (no trailing slash).

    Raises:
        ConfigurationError: If SUPABASE_URL not set.
    """
    url = os.getenv("SUPABASE_URL")
    if not url:
        raise ConfigurationError("SUPABASE_URL environment variable is required")
    return url.rstrip("/")


def get_supabase_service_key() -> str:
    """Get Supabase service role key.

    Raises:
        ConfigurationError: If SUPABASE_SERVICE_KEY not set.
    """
    key = os.getenv("SUPABASE_SERVICE_KEY")
    if not key:
        raise ConfigurationError("SUPABASE_SERVICE_KEY environment variable is required")
    return key


def get_supabase_bucket() -> str:
    return os.getenv("SUPABASE_BUCKET", DEFAULT_SUPABASE_BUCKET)


def get_max_media_bytes() -> int:
    """Get the maximum accepted media size in bytes (1MB-25MB, default 25MB)."""
    return _get_int("MAX_MEDIA_BYTES", DEFAULT_MAX_MEDIA_BYTES, 1024 * 1024, DEFAULT_MAX_MEDIA_BYTES)


def get_download_timeout_seconds() -> int:
    return _get_int("DOWNLOAD_TIMEOUT_SECONDS", DEFAULT_DOWNLOAD_TIMEOUT_SECONDS, 5, 600)


def get_rate_limit_max_requests() -> int:
    return _get_int("RATE_LIMIT_MAX_REQUESTS", DEFAULT_RATE_LIMIT_MAX_REQUESTS, 1, 10_000)


def get_rate_limit_window_seconds() -> int:
    return _get_int("RATE_LIMIT_WINDOW_SECONDS", DEFAULT_RATE_LIMIT_WINDOW_SECONDS, 1, 3600)


def get_frontend_origin() -> str:
    return os.getenv("FRONTEND_ORIGIN", DEFAULT_FRONTEND_ORIGIN)


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_log_json() -> bool:
    """Whether logs are rendered as JSON (default) or for a developer console."""
    return os.getenv("LOG_JSON", "true").strip().lower() not in ("0", "false", "no")


def get_apify_post_actor_id() -> str:
    return os.getenv("APIFY_POST_ACTOR_ID", DEFAULT_APIFY_POST_ACTOR_ID)


def get_ocr_model() -> str:
    return os.getenv("OCR_MODEL", DEFAULT_OCR_MODEL)


def get_max_image_bytes() -> int:
    """Get the maximum accepted OCR upload size in bytes (64KB-10MB, default 10MB)."""
    return _get_int("MAX_IMAGE_BYTES", DEFAULT_MAX_IMAGE_BYTES, 64 * 1024, DEFAULT_MAX_IMAGE_BYTES)
