# app/normalizers/base.py
from typing import Protocol
from .types import NormalizationResult

class Normalizer(Protocol):
    def normalize(self, raw_name: str) -> NormalizationResult:
        """Resolve one raw name. Must never raise: failures go in the result."""
        ...
