"""
ingestion/audio_loader.py — File I/O boundary for audio loading.

This is the ONLY module in the analyzer that reads audio from disk.
Everything downstream (core/audio/*, core/genre/*) takes pre-loaded mono
(y, sr) arrays — never file paths.

Stereo is mixed down here, once. The analysis layers never see more than
one channel.

Usage:
    from ingestion.audio_loader import load_audio
    y, sr = load_audio("/path/to/clip.wav")          # first 15 s, mono
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np

from core.audio.types import MAX_RAW_AUDIO_SEC

# Supported audio file extensions (must be loadable by librosa / soundfile)
AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {".mp3", ".wav", ".flac", ".aiff", ".aif", ".ogg", ".m4a", ".opus"}
)

# Clips are analyzed from the start, at most this long.
DEFAULT_DURATION: float = MAX_RAW_AUDIO_SEC


def mix_to_mono(y: np.ndarray) -> np.ndarray:
    """Average channels of a (channels, samples) array. 1-D input passes through.

    Raises:
        ValueError: If y has more than two dimensions.
    """
    arr = np.asarray(y, dtype=np.float32)
    if arr.ndim == 1:
        return arr
    if arr.ndim != 2:
        raise ValueError(f"Expected mono or (channels, samples) audio, got shape {arr.shape}")
    return arr.mean(axis=0).astype(np.float32)


def load_audio(
    path: str | Path,
    *,
    duration: float = DEFAULT_DURATION,
    sr: int | None = None,
    librosa: Any = None,
) -> tuple[np.ndarray, int]:
    """Load an audio file and return mono (y, sr).

    Args:
        path: Path to an audio file (mp3, wav, flac, aiff, ogg, m4a, opus).
        duration: Seconds to load from the start, in (0, 15].
        sr: Target sample rate in Hz. None preserves the native rate.
        librosa: Injected librosa module. None = import lazily.

    Returns:
        (y, sr) — 1-D float32 samples and the sample rate.

    Raises:
        FileNotFoundError: File does not exist at the given path.
        ValueError: Unsupported extension or duration outside (0, 15].
        RuntimeError: librosa/soundfile could not decode the file
                      (corrupted, truncated, DRM-protected, etc.).
    """
    file_path = Path(path)

    if not file_path.exists():
        raise FileNotFoundError(f"Audio file not found: {file_path}")

    if file_path.suffix.lower() not in AUDIO_EXTENSIONS:
        raise ValueError(
            f"Unsupported audio format {file_path.suffix!r}. "
            f"Supported: {sorted(AUDIO_EXTENSIONS)}"
        )

    if not 0.0 < duration <= MAX_RAW_AUDIO_SEC:
        raise ValueError(f"duration must be in (0, {MAX_RAW_AUDIO_SEC}] seconds, got {duration}")

    if librosa is None:
        import librosa  # deferred to allow testing without audio backend

    try:
        y, loaded_sr = librosa.load(
            file_path,
            sr=sr,
            mono=True,
            duration=duration,
            offset=0.0,
        )
    except Exception as exc:
        raise RuntimeError(f"Failed to decode audio file {file_path.name!r}: {exc}") from exc

    return mix_to_mono(y), int(loaded_sr)
