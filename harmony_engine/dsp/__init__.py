"""
DSP building blocks: chunking, windows, Goertzel filters, test tones.
"""
from harmony_engine.dsp.overlap import OverlapChunks, overlap_chunks
from harmony_engine.dsp.window import hann
from harmony_engine.dsp.goertzel import (
    GoertzelBank,
    GoertzelFilter,
    PIANO_KEY_FREQUENCIES,
    goertzel,
    piano_key_frequency,
)
from harmony_engine.dsp.oscillators import Oscillator

__all__ = [
    "OverlapChunks",
    "overlap_chunks",
    "hann",
    "GoertzelBank",
    "GoertzelFilter",
    "PIANO_KEY_FREQUENCIES",
    "goertzel",
    "piano_key_frequency",
    "Oscillator",
]
