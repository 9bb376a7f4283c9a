from .pipeline import get_default_normalizer, normalize_batch, summarize, BATCH_PAUSE_SECONDS
from .rxnorm import RxNormClient
from .types import (
    DEFAULT_RXNORM_CONFIG,
    ErrorKind,
    NormalizationResult,
    NormalizationStatus,
    ProgressEvent,
    RxNormConfig,
    RxNormLookupError,
)
from .base import Normalizer

__all__ = [
    "get_default_normalizer",
    "normalize_batch",
    "summarize",
    "BATCH_PAUSE_SECONDS",
    "RxNormClient",
    "DEFAULT_RXNORM_CONFIG",
    "ErrorKind",
    "NormalizationResult",
    "NormalizationStatus",
    "ProgressEvent",
    "RxNormConfig",
    "RxNormLookupError",
    "Normalizer",
]
