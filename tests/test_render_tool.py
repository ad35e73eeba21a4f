"""
Smoke test for tools/render_spectrogram.py: writes a grid and a fingerprint summary.
Run from project root: python -m pytest tests/test_render_tool.py -v
"""
import sys
import os
import json

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import numpy as np

from tools.render_spectrogram import main


def test_render_tone(tmp_path):
    code = main([
        "--tone", "440",
        "--sample-rate", "8000",
        "--resolution", "10",
        "--duration", "1",
        "--output-dir", str(tmp_path),
    ])
    assert code == 0

    grid = np.load(tmp_path / "tone_440hz.fourier.npy")
    assert grid.shape == (10, 401)
    with open(tmp_path / "tone_440hz.fourier.json") as f:
        summary = json.load(f)
    assert summary["window_size"] == 800
    assert summary["fingerprint"]["nonzero_rows"] == 10
    assert len(summary["fingerprint"]["sha256"]) == 64


def test_render_same_input_same_fingerprint(tmp_path):
    args = ["--tone", "261.63", "--sample-rate", "8000", "--resolution", "5", "--duration", "2",
            "--algorithm", "goertzel_bank"]
    assert main(args + ["--output-dir", str(tmp_path / "a")]) == 0
    assert main(args + ["--output-dir", str(tmp_path / "b")]) == 0
    with open(tmp_path / "a" / "tone_261.63hz.goertzel_bank.json") as f:
        first = json.load(f)
    with open(tmp_path / "b" / "tone_261.63hz.goertzel_bank.json") as f:
        second = json.load(f)
    assert first["fingerprint"]["sha256"] == second["fingerprint"]["sha256"]


def test_render_missing_file_fails(tmp_path):
    assert main([str(tmp_path / "missing.wav"), "--output-dir", str(tmp_path)]) == 1
