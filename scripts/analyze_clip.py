"""CLI script: classify the genre of one audio file.

Usage:
    # Ranked predictions as a table:
    python scripts/analyze_clip.py path/to/clip.wav

    # First 8 seconds only, full result as JSON:
    python scripts/analyze_clip.py path/to/clip.wav --duration 8 --json

    # Fuse a trained softmax model and show how the ranking was reached:
    python scripts/analyze_clip.py clip.wav --model models/genre.npz --provenance

Exit codes:
    0 — success
    1 — file missing, unsupported, or undecodable
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
sys.path.insert(0, str(Path(__file__).parent.parent))

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    from core.audio.types import MAX_RAW_AUDIO_SEC

    parser = argparse.ArgumentParser(description="Classify the genre of an audio clip.")
    parser.add_argument("file", help="Audio file (.wav .mp3 .flac .ogg .aiff .m4a).")
    parser.add_argument(
        "--duration",
        type=float,
        default=MAX_RAW_AUDIO_SEC,
        metavar="SEC",
        help=f"Seconds to analyse from the start (max {MAX_RAW_AUDIO_SEC:g}).",
    )
    parser.add_argument("--json", action="store_true", default=False, help="Print the result as JSON.")
    parser.add_argument(
        "--model",
        type=str,
        default=None,
        metavar="PATH",
        help="Softmax model (.npz) to fuse with the heuristic scores.",
    )
    parser.add_argument(
        "--authoritative",
        action="store_true",
        default=False,
        help="Let the --model distribution replace the heuristic scores.",
    )
    parser.add_argument(
        "--provenance",
        action="store_true",
        default=False,
        help="Include raw scores, fired rules and adapter handling.",
    )
    return parser.parse_args(argv)


def _to_dict(result, *, provenance: bool) -> dict:
    clip = result.clip
    prov = clip.classification.provenance
    key = clip.features.key_detection
    data = {
        "file": result.path,
        "predictions": [{"genre": p.genre, "confidence": p.confidence} for p in clip.classification.predictions],
        "pitch_hz": round(clip.pitch_hz, 2),
        "tempo": round(clip.rhythm.tempo, 2),
        "regularity": round(clip.rhythm.regularity, 3),
        "polyrhythmic": clip.rhythm.polyrhythmic,
        "scale": clip.scale.scale,
        "key": key.label if key is not None else None,
        "bpm_check": prov.bpm.verdict.value if prov.bpm is not None else None,
        "basic_features": clip.features.basic_features,
        "processing_time_ms": round(result.processing_time_ms, 1),
    }
    if provenance:
        data["provenance"] = {
            "raw_scores": {g: round(s, 3) for g, s in prov.raw_scores},
            "tempo_in": prov.tempo_in,
            "tempo_used": prov.tempo_used,
            "early_correction": prov.early_correction,
            "fired_rules": list(prov.fired_rules),
            "adapter_kind": prov.adapter_kind.value,
            "adapter_status": prov.adapter_status.value,
            "mfcc_nudged": prov.mfcc_nudged,
            "blended": prov.blended,
            "relative_fallback": prov.relative_fallback,
        }
    return data


def _render(data: dict) -> str:
    lines = [f"\n  {Path(data['file']).name}"]
    lines.append(f"  tempo {data['tempo']:.1f} BPM · regularity {data['regularity']:.2f} · {data['scale']}")
    if data["key"]:
        lines.append(f"  key {data['key']}")
    lines.append("")
    for rank, pred in enumerate(data["predictions"], start=1):
        bar = "█" * (pred["confidence"] // 4)
        lines.append(f"  {rank}. {pred['genre']:<20} {pred['confidence']:>3}%  {bar}")
    if "provenance" in data:
        prov = data["provenance"]
        lines.append("")
        lines.append(f"  rules fired: {', '.join(prov['fired_rules']) or 'none'}")
        lines.append(f"  adapter: {prov['adapter_kind']} ({prov['adapter_status']})")
    return "\n".join(lines) + "\n"


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from ingestion.audio_engine import GenreAnalysisEngine
    from ingestion.model_loader import build_adapter

    adapter = build_adapter(args.model, authoritative=args.authoritative)
    engine = GenreAnalysisEngine(adapter=adapter)

    try:
        result = engine.analyze_file(args.file, duration=args.duration)
    except (FileNotFoundError, ValueError, RuntimeError) as exc:
        logger.error("%s", exc)
        return 1

    data = _to_dict(result, provenance=args.provenance)
    if args.json:
        print(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        print(_render(data))
    return 0


if __name__ == "__main__":
    sys.exit(main())
