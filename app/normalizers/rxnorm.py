# app/normalizers/rxnorm.py
import json
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import requests
import urllib3

from .base import Normalizer
from .types import (
    DEFAULT_RXNORM_CONFIG,
    ErrorKind,
    NormalizationResult,
    RxNormConfig,
    RxNormLookupError,
)

log = logging.getLogger(__name__)

USER_AGENT = "rxnorm-normalizer/0.1"
NOT_IN_VOCABULARY = "not found in vocabulary"
NO_INGREDIENT = "ingredient not found"
INGREDIENT_TTY = "IN"
BODY_CHUNK_BYTES = 8192


class RxNormClient(Normalizer):
    """
    Resolves messy drug names to generic ingredient names via RxNav:

      1. approximateTerm.json  -> RxCUI of the top-ranked candidate
      2. rxcui/{id}/related.json?tty=IN -> first ingredient name

    Every HTTP call goes through the same timeout/retry policy (see _get_json).

    Without an explicit `session`, each thread gets its own requests.Session
    (the service calls one client from many worker threads). A session passed
    in is used as-is from every thread.
    """

    def __init__(
        self,
        config: RxNormConfig = DEFAULT_RXNORM_CONFIG,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self._session = session
        self._local = threading.local()
        self._owned: List[requests.Session] = []
        self._owned_lock = threading.Lock()
        self._sleep = sleep

    @property
    def session(self) -> requests.Session:
        if self._session is not None:
            return self._session
        s = getattr(self._local, "session", None)
        if s is None:
            s = requests.Session()
            s.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
            self._local.session = s
            with self._owned_lock:
                self._owned.append(s)
        return s

    # ------------------------------------------------------------------
    # HTTP with timeout + retry
    # ------------------------------------------------------------------
    def _read_body(self, resp: requests.Response, deadline: float) -> bytes:
        """
        Read a streamed body, giving up once `deadline` (time.monotonic) passes.
        A single read blocks for at most the socket timeout.
        """
        chunks = []
        while True:
            if time.monotonic() > deadline:
                raise requests.exceptions.Timeout("attempt deadline passed while reading the body")
            chunk = resp.raw.read1(BODY_CHUNK_BYTES, decode_content=True)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)

    def _get_json(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        """
        GET {base_url}{path} and decode JSON.

        Each attempt, body included, is bounded by timeout_ms.
        4xx fails immediately. Timeouts, 5xx and transport errors are retried
        up to retry_attempts times, sleeping retry_delay * attempt in between.
        """
        url = f"{self.config.base_url.rstrip('/')}{path}"
        attempts = max(1, int(self.config.retry_attempts))
        timeout_s = self.config.timeout_ms / 1000.0
        last_error: Optional[RxNormLookupError] = None

        for attempt in range(1, attempts + 1):
            deadline = time.monotonic() + timeout_s
            try:
                with self.session.get(url, params=params, timeout=timeout_s, stream=True) as resp:
                    if resp.ok:
                        return json.loads(self._read_body(resp, deadline))
                    status, reason = resp.status_code, resp.reason
            except (requests.exceptions.Timeout, urllib3.exceptions.TimeoutError):
                last_error = RxNormLookupError(
                    ErrorKind.TIMEOUT, f"Request timeout after {self.config.timeout_ms}ms"
                )
            except (requests.exceptions.RequestException, urllib3.exceptions.HTTPError) as e:
                last_error = RxNormLookupError(ErrorKind.NETWORK_ERROR, f"Network error: {e}")
            else:
                msg = f"HTTP {status}: {reason or ''}".rstrip(": ")
                if 400 <= status < 500:
                    # client errors won't get better by asking again
                    raise RxNormLookupError(ErrorKind.HTTP_CLIENT_ERROR, msg, status_code=status)
                last_error = RxNormLookupError(ErrorKind.HTTP_SERVER_ERROR, msg, status_code=status)

            if attempt < attempts:
                delay_s = self.config.retry_delay_ms * attempt / 1000.0
                log.warning(
                    "rxnorm request failed (attempt %d/%d): %s; retrying in %.1fs",
                    attempt, attempts, last_error, delay_s,
                )
                self._sleep(delay_s)

        log.error("rxnorm request gave up after %d attempts: %s", attempts, last_error)
        raise RxNormLookupError(
            ErrorKind.MAX_RETRIES_EXCEEDED,
            f"Failed after {attempts} attempts: {last_error.message if last_error else 'unknown'}",
        )

    # ------------------------------------------------------------------
    # Step 1: name -> RxCUI
    # ------------------------------------------------------------------
    def resolve_identifier(self, raw_name: str) -> Optional[str]:
        """
        Fuzzy-match `raw_name` against RxNorm and return the top candidate's RxCUI.
        Returns None if RxNorm has no candidates (an unknown drug is not an error).
        """
        name = (raw_name or "").strip()
        if not name:
            raise RxNormLookupError(ErrorKind.INVALID_INPUT, "Drug name cannot be empty")

        try:
            data = self._get_json("/approximateTerm.json", params={"term": name})
            group = (data or {}).get("approximateGroup") or {}
            candidates = group.get("candidate") or []
            if not candidates:
                return None
            rxcui = candidates[0].get("rxcui")
            return str(rxcui) if rxcui else None
        except RxNormLookupError as e:
            e.drug_name = raw_name
            raise
        except Exception as e:
            raise RxNormLookupError(
                ErrorKind.UNKNOWN_ERROR, f"Unexpected error searching for drug: {e}", drug_name=raw_name
            ) from e

    # ------------------------------------------------------------------
    # Step 2: RxCUI -> ingredient name
    # ------------------------------------------------------------------
    def resolve_generic_name(self, rxcui: str) -> Optional[str]:
        """Return the first ingredient (tty=IN) name related to `rxcui`, or None."""
        ident = (rxcui or "").strip()
        if not ident:
            raise RxNormLookupError(ErrorKind.INVALID_INPUT, "RxCUI cannot be empty")

        try:
            data = self._get_json(f"/rxcui/{quote(ident, safe='')}/related.json", params={"tty": INGREDIENT_TTY})
            groups = ((data or {}).get("relatedGroup") or {}).get("conceptGroup") or []
            ingredients = next((g for g in groups if g.get("tty") == INGREDIENT_TTY), None)
            if not ingredients:
                return None
            props = ingredients.get("conceptProperties") or []
            if not props:
                return None
            return props[0].get("name") or None
        except RxNormLookupError:
            raise
        except Exception as e:
            raise RxNormLookupError(
                ErrorKind.UNKNOWN_ERROR, f"Unexpected error getting generic name: {e}"
            ) from e

    # ------------------------------------------------------------------
    # Both steps
    # ------------------------------------------------------------------
    def normalize(self, raw_name: str) -> NormalizationResult:
        """
        Full lookup for one name. Never raises: lookup failures come back as
        status=error with "<ErrorKind>: <message>" in error_message.
        """
        try:
            rxcui = self.resolve_identifier(raw_name)
            if not rxcui:
                log.info("no RxNorm match for %r", raw_name)
                return NormalizationResult.not_found(raw_name, NOT_IN_VOCABULARY)

            generic = self.resolve_generic_name(rxcui)
            if not generic:
                log.info("no ingredient for %r (rxcui=%s)", raw_name, rxcui)
                return NormalizationResult.not_found(raw_name, NO_INGREDIENT, rxcui=rxcui)

            log.debug("normalized %r -> %r (rxcui=%s)", raw_name, generic, rxcui)
            return NormalizationResult.success(raw_name, generic, rxcui)

        except RxNormLookupError as e:
            log.warning("lookup failed for %r: %s", raw_name, e)
            return NormalizationResult.error(raw_name, str(e))
        except Exception as e:
            log.exception("unexpected failure normalizing %r", raw_name)
            return NormalizationResult.error(raw_name, f"{ErrorKind.UNKNOWN_ERROR.value}: Unexpected error: {e}")

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------
    def check_connectivity(self) -> bool:
        """True if RxNorm answers a known drug (aspirin) with an RxCUI."""
        try:
            return self.resolve_identifier("aspirin") is not None
        except RxNormLookupError as e:
            log.warning("rxnorm connectivity check failed: %s", e)
            return False

    def close(self) -> None:
        """Close the sessions this client opened. A borrowed session is left alone."""
        with self._owned_lock:
            owned, self._owned = self._owned, []
        for s in owned:
            s.close()
        self._local = threading.local()
