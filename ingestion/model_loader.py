"""
ingestion/model_loader.py — Load trained genre-model weights from disk.

Weights are a NumPy `.npz` archive with three arrays:

    weights  (n_labels, n_features) float
    bias     (n_labels,) float
    labels   (n_labels,) str

n_features must match the feature vector layout of
AcousticFeatureBundle.to_vector(). Pickled objects are refused.

Usage:
    from ingestion.model_loader import build_adapter
    adapter = build_adapter("/models/genre_softmax.npz", authoritative=False)
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from core.genre.adapters import HeuristicGenreModel, ModelAdapter, SoftmaxGenreModel
from infrastructure.retry import with_retry

logger = logging.getLogger(__name__)

MODEL_EXTENSION: str = ".npz"
_REQUIRED_KEYS: tuple[str, ...] = ("weights", "bias", "labels")


@with_retry(max_attempts=3, base_seconds=0.2, max_seconds=2.0)
def _read_archive(path: Path) -> dict[str, np.ndarray]:
    with np.load(path, allow_pickle=False) as archive:
        return {key: np.array(archive[key]) for key in archive.files}


def load_softmax_model(path: str | Path, *, authoritative: bool = False) -> SoftmaxGenreModel:
    """Load a SoftmaxGenreModel from a `.npz` archive.

    Args:
        path: Path to the archive.
        authoritative: Let the model override the heuristic ranking.

    Returns:
        Ready-to-use SoftmaxGenreModel.

    Raises:
        FileNotFoundError: The archive does not exist.
        ValueError: Wrong extension, missing arrays or mismatched shapes.
        RuntimeError: The archive could not be read after retries.
    """
    model_path = Path(path)
    if not model_path.exists():
        raise FileNotFoundError(f"Genre model not found: {model_path}")
    if model_path.suffix.lower() != MODEL_EXTENSION:
        raise ValueError(f"Genre model must be a {MODEL_EXTENSION} archive, got {model_path.suffix!r}")

    try:
        arrays = _read_archive(model_path)
    except ValueError as exc:
        # np.load raises ValueError for pickled or malformed archives
        raise ValueError(f"Genre model {model_path.name!r} is not a valid archive: {exc}") from exc

    missing = [key for key in _REQUIRED_KEYS if key not in arrays]
    if missing:
        raise ValueError(f"Genre model {model_path.name!r} is missing arrays: {missing}")

    labels = [str(label) for label in arrays["labels"].tolist()]
    model = SoftmaxGenreModel(arrays["weights"], arrays["bias"], labels, authoritative=authoritative)
    logger.info(
        "Loaded genre model %s (%d labels, authoritative=%s)",
        model_path.name,
        len(labels),
        authoritative,
    )
    return model


def build_adapter(model_path: str | Path | None, *, authoritative: bool = False) -> ModelAdapter:
    """Return the adapter a deployment should use.

    No path → HeuristicGenreModel (informational only, never blended).
    A path that fails to load is logged and also falls back to the stub,
    so a bad deployment degrades to heuristic scores instead of failing
    every request.
    """
    if not model_path:
        return HeuristicGenreModel()
    try:
        return load_softmax_model(model_path, authoritative=authoritative)
    except (FileNotFoundError, ValueError, RuntimeError) as exc:
        logger.error("Could not load genre model %s; using heuristic stub: %s", model_path, exc)
        return HeuristicGenreModel()
