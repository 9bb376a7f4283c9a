# app/normalizers/types.py
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


# -----------------------------
# Configuration
# -----------------------------
@dataclass(frozen=True)
class RxNormConfig:
    """
    Settings for talking to the RxNorm REST API.

    Defaults (see DEFAULT_RXNORM_CONFIG):
      base_url        public NIH RxNav endpoint, no auth
      timeout_ms      10000 per attempt
      retry_attempts  3 attempts in total
      retry_delay_ms  1000, multiplied by the attempt number between attempts
    """
    base_url: str = "https://rxnav.nlm.nih.gov/REST"
    timeout_ms: int = 10_000
    retry_attempts: int = 3
    retry_delay_ms: int = 1_000


DEFAULT_RXNORM_CONFIG = RxNormConfig()


# -----------------------------
# Errors
# -----------------------------
class ErrorKind(str, Enum):
    INVALID_INPUT = "InvalidInput"
    TIMEOUT = "Timeout"
    HTTP_CLIENT_ERROR = "HttpClientError"
    HTTP_SERVER_ERROR = "HttpServerError"
    NETWORK_ERROR = "NetworkError"
    MAX_RETRIES_EXCEEDED = "MaxRetriesExceeded"
    UNKNOWN_ERROR = "UnknownError"


class RxNormLookupError(Exception):
    """A failed RxNorm call, tagged with an ErrorKind."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: Optional[int] = None,
        drug_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.drug_name = drug_name

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


# -----------------------------
# Results
# -----------------------------
class NormalizationStatus(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class NormalizationResult:
    original_name: str
    generic_name: Optional[str]
    rxcui: Optional[str]
    status: NormalizationStatus
    error_message: Optional[str] = None

    @classmethod
    def success(cls, original_name: str, generic_name: str, rxcui: str) -> "NormalizationResult":
        return cls(original_name, generic_name, rxcui, NormalizationStatus.SUCCESS)

    @classmethod
    def not_found(cls, original_name: str, message: str, rxcui: Optional[str] = None) -> "NormalizationResult":
        return cls(original_name, None, rxcui, NormalizationStatus.NOT_FOUND, message)

    @classmethod
    def error(cls, original_name: str, message: str) -> "NormalizationResult":
        return cls(original_name, None, None, NormalizationStatus.ERROR, message)

    @property
    def ok(self) -> bool:
        return self.status is NormalizationStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "NormalizationResult":
        """Inverse of to_dict (e.g. for results received over HTTP)."""
        return cls(
            original_name=d["original_name"],
            generic_name=d.get("generic_name"),
            rxcui=d.get("rxcui"),
            status=NormalizationStatus(d["status"]),
            error_message=d.get("error_message"),
        )


@dataclass(frozen=True)
class ProgressEvent:
    """Emitted before each item of a batch, plus once at the end (current="")."""
    completed: int
    total: int
    current: str

    @property
    def percentage(self) -> float:
        if self.total <= 0:
            return 100.0
        return round(100.0 * self.completed / self.total, 1)
