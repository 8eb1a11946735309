"""
core/genre/fusion.py — Bounded adapter invocation and score fusion.

invoke_adapter() is the only asynchronous boundary in the pipeline: the
adapter runs on its own daemon thread and the caller waits at most
`timeout_seconds` on a Future. A timed-out call is abandoned; its thread
finishes in the background, its result is discarded, and a hung adapter
does not hold up interpreter exit.

Fusion policy:
    untrained                    → ignored (status UNTRAINED)
    trained, nothing > floor     → ignored (status LOW_CONFIDENCE)
    trained                      → convex blend, adapter weight 0.4
    trained + authoritative      → the adapter's distribution replaces the scores
"""

from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FuturesTimeoutError

from core.audio.types import AcousticFeatureBundle
from core.genre.adapters import ModelAdapter
from core.genre.scoring import GenreScoreTable
from core.genre.types import GENRES, AdapterStatus, ModelAdapterResult

logger = logging.getLogger(__name__)

DEFAULT_ADAPTER_TIMEOUT: float = 2.0
ADAPTER_THREAD_NAME: str = "genre-adapter"


def _predict_into(adapter: ModelAdapter, bundle: AcousticFeatureBundle, future: Future) -> None:
    if not future.set_running_or_notify_cancel():
        return
    try:
        future.set_result(adapter.predict(bundle))
    except Exception as exc:
        future.set_exception(exc)


def _is_valid(result: object) -> bool:
    if not isinstance(result, ModelAdapterResult):
        return False
    if not math.isfinite(result.confidence):
        return False
    return all(math.isfinite(p.confidence) for p in result.predictions)


def invoke_adapter(
    adapter: ModelAdapter,
    bundle: AcousticFeatureBundle,
    timeout_seconds: float = DEFAULT_ADAPTER_TIMEOUT,
) -> ModelAdapterResult | None:
    """Call adapter.predict(bundle) with a bounded wait.

    Returns:
        The adapter's result, or None when it timed out, raised, or
        returned something that is not a well-formed ModelAdapterResult.
        Every None is logged as a degradation warning.
    """
    future: Future = Future()
    worker = threading.Thread(
        target=_predict_into,
        args=(adapter, bundle, future),
        name=ADAPTER_THREAD_NAME,
        daemon=True,
    )
    worker.start()
    try:
        result = future.result(timeout=timeout_seconds)
    except FuturesTimeoutError:
        logger.warning(
            "Genre model adapter timed out after %.2fs; continuing with heuristic scores",
            timeout_seconds,
        )
        return None
    except Exception as exc:
        logger.warning("Genre model adapter failed; continuing with heuristic scores: %s", exc)
        return None

    if not _is_valid(result):
        logger.warning("Genre model adapter returned a malformed result (%r); ignoring it", type(result).__name__)
        return None
    return result


def fuse_adapter(
    table: GenreScoreTable,
    result: ModelAdapterResult,
    *,
    blend_weight: float,
    confidence_floor: float,
) -> AdapterStatus:
    """Fold a successful adapter result into the score table.

    Args:
        table: Heuristic scores (mutated in place).
        result: Output of invoke_adapter().
        blend_weight: Adapter share of the blended score.
        confidence_floor: Predictions at or below this are ignored.

    Returns:
        How the result was used.
    """
    if not result.model_trained:
        return AdapterStatus.UNTRAINED

    usable = {
        p.genre: p.confidence
        for p in result.predictions
        if p.genre in GENRES and p.confidence > confidence_floor
    }
    if not usable:
        return AdapterStatus.LOW_CONFIDENCE

    if result.authoritative:
        table.replace(usable)
        logger.info("Authoritative genre model overrides heuristic ranking: %s", result.top_genre)
        return AdapterStatus.OVERRIDE

    # Scale the adapter's probabilities to the heuristic table's mass.
    mass = sum(table.clamped().values()) or 1.0
    blended = {
        genre: (1.0 - blend_weight) * table[genre] + blend_weight * usable.get(genre, 0.0) * mass
        for genre in GENRES
    }
    table.replace(blended)
    return AdapterStatus.BLENDED
