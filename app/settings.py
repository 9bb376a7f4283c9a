# app/settings.py
import os
from pathlib import Path

from dotenv import load_dotenv

from app.normalizers.types import DEFAULT_RXNORM_CONFIG, RxNormConfig

PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Pick up a local .env; variables already in the environment win
load_dotenv(PROJECT_ROOT / ".env")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# RxNorm client
RXNORM_BASE_URL = os.getenv("RXNORM_BASE_URL", DEFAULT_RXNORM_CONFIG.base_url)
RXNORM_TIMEOUT_MS = _env_int("RXNORM_TIMEOUT_MS", DEFAULT_RXNORM_CONFIG.timeout_ms)
RXNORM_RETRY_ATTEMPTS = _env_int("RXNORM_RETRY_ATTEMPTS", DEFAULT_RXNORM_CONFIG.retry_attempts)
RXNORM_RETRY_DELAY_MS = _env_int("RXNORM_RETRY_DELAY_MS", DEFAULT_RXNORM_CONFIG.retry_delay_ms)

# Startup probe of the RxNorm API
#   RXNORM_STARTUP_PROBE=true -> check connectivity when the service starts
#   PROBE_BLOCKING=true       -> wait for the check before serving
RXNORM_STARTUP_PROBE = _env_flag("RXNORM_STARTUP_PROBE")
PROBE_BLOCKING = _env_flag("PROBE_BLOCKING")

# Request limits
MAX_NAMES_PER_REQUEST = 1000
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def load_rxnorm_config() -> RxNormConfig:
    return RxNormConfig(
        base_url=RXNORM_BASE_URL,
        timeout_ms=RXNORM_TIMEOUT_MS,
        retry_attempts=RXNORM_RETRY_ATTEMPTS,
        retry_delay_ms=RXNORM_RETRY_DELAY_MS,
    )
