import logging
import threading
import time
from collections import Counter
from typing import Callable, Dict, Iterable, List, Optional

from .base import Normalizer
from .types import NormalizationResult, NormalizationStatus, ProgressEvent

log = logging.getLogger(__name__)

# Gap between consecutive lookups so we don't hammer RxNav
BATCH_PAUSE_SECONDS = 0.1

ProgressCallback = Callable[[ProgressEvent], None]


def normalize_batch(
    raw_names: Iterable[str],
    normalizer: Optional[Normalizer] = None,
    on_progress: Optional[ProgressCallback] = None,
    *,
    pause_seconds: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> List[NormalizationResult]:
    """
    Normalize names one at a time, in order.

    - No de-duplication here: one result per input element. Callers that
      want fewer remote calls should pass unique names.
    - on_progress fires before each item (completed = items done so far)
      and once more at the end with current="".
    - A failing name never stops the batch; it shows up as an error result.
    - If cancel_event gets set, we stop before starting the next item and
      return what we have.
    """
    if isinstance(raw_names, (str, bytes)):
        raise TypeError("raw_names must be a collection of strings, not a single string")
    try:
        names = list(raw_names)
    except TypeError:
        raise TypeError(f"raw_names must be iterable, got {type(raw_names).__name__}") from None
    for i, n in enumerate(names):
        if not isinstance(n, str):
            raise TypeError(f"raw_names[{i}] must be a string, got {type(n).__name__}")

    normalizer = normalizer or get_default_normalizer()
    sleep = sleep or time.sleep
    pause = BATCH_PAUSE_SECONDS if pause_seconds is None else pause_seconds
    total = len(names)
    results: List[NormalizationResult] = []
    log.info("batch start: %d name(s)", total)

    for i, name in enumerate(names):
        if cancel_event is not None and cancel_event.is_set():
            log.warning("batch cancelled after %d/%d name(s)", i, total)
            break

        if on_progress:
            on_progress(ProgressEvent(completed=i, total=total, current=name))

        results.append(normalizer.normalize(name))

        if i < total - 1:
            sleep(pause)

    if on_progress:
        done = len(results)
        on_progress(ProgressEvent(completed=done, total=total, current=""))

    counts = summarize(results)
    log.info(
        "batch done: %d/%d processed (success=%d not_found=%d error=%d)",
        counts["total"], total, counts["success"], counts["not_found"], counts["error"],
    )
    return results


def summarize(results: Iterable[NormalizationResult]) -> Dict[str, int]:
    """Count results per status."""
    c = Counter(r.status for r in results)
    return {
        "total": sum(c.values()),
        "success": c[NormalizationStatus.SUCCESS],
        "not_found": c[NormalizationStatus.NOT_FOUND],
        "error": c[NormalizationStatus.ERROR],
    }


def get_default_normalizer() -> Normalizer:
    """
    Factory for the default normalizer: an RxNorm client configured from settings.
    """
    from app.settings import load_rxnorm_config
    from .rxnorm import RxNormClient

    return RxNormClient(load_rxnorm_config())
