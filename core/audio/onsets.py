"""
core/audio/onsets.py — Energy-based onset detection with an adaptive threshold.

Short-time RMS over 1024-sample windows (hop 512). A frame is an onset when
it is a strict local maximum, exceeds median + 0.55 * std of all frame
energies, and rises over the previous frame by more than 0.3 * std.
Accepted onsets must be more than 2 * hop apart.

Fully deterministic: the threshold factor is a fixed constant.
"""

from __future__ import annotations

import numpy as np

WINDOW_SIZE: int = 1024
HOP_SIZE: int = 512
THRESHOLD_FACTOR: float = 0.55
RISE_FACTOR: float = 0.3
MIN_SPACING: int = 2 * HOP_SIZE


def frame_energies(samples: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Short-time RMS energy per window.

    Windows start every HOP_SIZE samples while start < len - WINDOW_SIZE.

    Returns:
        (positions, energies) — window start sample and its RMS.
    """
    x = np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0, posinf=0.0, neginf=0.0)
    positions = np.arange(0, max(x.size - WINDOW_SIZE, 0), HOP_SIZE)
    if positions.size == 0:
        return positions, np.zeros(0)
    windows = x[positions[:, None] + np.arange(WINDOW_SIZE)[None, :]]
    energies = np.sqrt(np.mean(windows * windows, axis=1))
    return positions, energies


def adaptive_threshold(energies: np.ndarray) -> tuple[float, float]:
    """Return (threshold, population std) for a set of frame energies.

    The median is the upper median (sorted[n // 2]).
    """
    if energies.size == 0:
        return 0.0, 0.0
    ordered = np.sort(energies)
    median = float(ordered[ordered.size // 2])
    std = float(np.std(energies))
    return median + THRESHOLD_FACTOR * std, std


def detect_onsets(samples: np.ndarray) -> tuple[int, ...]:
    """Detect onset sample positions in a mono buffer.

    Args:
        samples: Mono samples.

    Returns:
        Strictly increasing window-start positions of detected onsets.
        Empty for silence or buffers shorter than two windows.
    """
    positions, energies = frame_energies(samples)
    if energies.size < 3:
        return ()

    threshold, std = adaptive_threshold(energies)
    peaks: list[int] = []
    for i in range(1, energies.size - 1):
        curr = energies[i]
        prev = energies[i - 1]
        if not (curr > prev and curr > energies[i + 1]):
            continue
        if curr <= threshold or (curr - prev) <= RISE_FACTOR * std:
            continue
        pos = int(positions[i])
        if peaks and pos - peaks[-1] <= MIN_SPACING:
            continue
        peaks.append(pos)
    return tuple(peaks)
