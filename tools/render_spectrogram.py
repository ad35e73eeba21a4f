#!/usr/bin/env python3
"""
Render a spectrogram from an audio file or a test tone, with a fingerprint
summary for spotting regressions between runs.

Usage:
    python tools/render_spectrogram.py song.ogg --resolution 10 --duration 60
    python tools/render_spectrogram.py --tone 440 --algorithm goertzel_bank

Writes <name>.npy (uint8, height x width) and <name>.json into the output dir.
"""
import sys
import os
import json
import hashlib
import argparse
import logging
from datetime import datetime
from pathlib import Path

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import numpy as np

from harmony_engine.analysis.builder import build_spectrogram, load_source, synthesize_tone
from harmony_engine.analysis.config import Algorithm, resolve_config
from harmony_engine.core.errors import SpectrogramError


def _fingerprint(data: bytes, matrix: np.ndarray) -> dict:
    """SHA256 of the bytes plus a few coarse statistics."""
    nonzero_rows = int(np.count_nonzero(matrix.any(axis=1))) if matrix.size else 0
    return {
        "sha256": hashlib.sha256(data).hexdigest(),
        "mean": float(matrix.mean()) if matrix.size else 0.0,
        "max": int(matrix.max()) if matrix.size else 0,
        "nonzero_rows": nonzero_rows,
    }


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Render a spectrogram to .npy + JSON summary")
    parser.add_argument("file", nargs="?", help="Audio file to analyze")
    parser.add_argument("--tone", type=float, help="Analyze a sine tone at this frequency instead")
    parser.add_argument("--sample-rate", type=int, default=44100, help="Tone sample rate")
    parser.add_argument("--resolution", type=float, help="Resolution in Hz (1..50)")
    parser.add_argument("--duration", type=int, help="Duration in seconds (1..120)")
    parser.add_argument("--algorithm", choices=[a.value for a in Algorithm])
    parser.add_argument("--dynamic-range", type=float, help="log10 divisor for the Fourier path")
    parser.add_argument("--window", action="store_true", help="Apply a Hann taper before the FFT")
    parser.add_argument("--relative", action="store_true", help="Normalize FFT magnitudes by window energy")
    parser.add_argument("--output-dir", default="renders", help="Output directory")
    args = parser.parse_args(argv)

    if not args.file and args.tone is None:
        parser.error("either a file or --tone is required")

    logging.basicConfig(level=logging.INFO)

    overrides = {}
    if args.resolution is not None:
        overrides["resolution_hz"] = args.resolution
    if args.duration is not None:
        overrides["duration_sec"] = args.duration
    if args.algorithm:
        overrides["algorithm"] = args.algorithm
    if args.dynamic_range is not None:
        overrides["dynamic_range"] = args.dynamic_range
    if args.window:
        overrides["apply_window"] = True
    if args.relative:
        overrides["relative"] = True
    config = resolve_config(overrides, clamp=True)

    try:
        if args.tone is not None:
            source = synthesize_tone(args.tone, sample_rate=args.sample_rate, duration_sec=config.duration_sec)
            name = f"tone_{args.tone:g}hz"
        else:
            source = load_source(args.file, max_duration_sec=config.max_duration_sec)
            name = Path(args.file).stem
        spectrogram = build_spectrogram(source, config)
    except SpectrogramError as exc:
        print(f"Failed to build spectrum: {exc}", file=sys.stderr)
        return 1

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    matrix = spectrogram.to_numpy()
    npy_path = output_dir / f"{name}.{config.algorithm.value}.npy"
    np.save(npy_path, matrix)

    summary = {
        "source": source.name,
        "sample_rate": source.sample_rate,
        "samples": len(source),
        "timestamp": datetime.now().isoformat(),
        "config": config.to_dict(),
        "width": spectrogram.width,
        "height": spectrogram.height,
        "window_size": spectrogram.window_size,
        "fingerprint": _fingerprint(spectrogram.data, matrix),
        "npy_path": str(npy_path),
    }
    json_path = output_dir / f"{name}.{config.algorithm.value}.json"
    with open(json_path, "w") as f:
        json.dump(summary, f, indent=2)

    print(f"\n=== Render Complete ===")
    print(f"Source: {source.name} ({len(source)} samples @ {source.sample_rate} Hz)")
    print(f"Size: {spectrogram.width}x{spectrogram.height}, window {spectrogram.window_size}")
    print(f"Fingerprint SHA256: {summary['fingerprint']['sha256'][:16]}...")
    print(f"Output: {npy_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
