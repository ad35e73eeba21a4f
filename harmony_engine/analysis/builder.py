"""
Spectrogram builder: decode into a bounded AudioSource, then turn the source
into a row-major byte matrix with either the FFT or the Goertzel bank.
"""
import logging
from typing import Optional

import numpy as np
import torch

from harmony_engine.analysis.config import MAX_DURATION_SEC, SpectrogramConfig
from harmony_engine.analysis.rows import make_rows
from harmony_engine.core.errors import InvalidWindowSize, UnsupportedSampleFormat
from harmony_engine.core.types import AudioSource, Spectrogram
from harmony_engine.dsp.oscillators import Oscillator
from harmony_engine.dsp.overlap import overlap_chunks
from harmony_engine.media.decoder import Decoder

logger = logging.getLogger(__name__)


def accumulate(decoder: Decoder, max_duration_sec: int = MAX_DURATION_SEC) -> AudioSource:
    """
    Pull blocks until the stream ends or sample_rate * max_duration_sec samples
    are buffered. Channel 0 only; the block that crosses the cap is truncated.
    """
    sample_rate = decoder.sample_rate
    cap = sample_rate * max_duration_sec
    chunks = []
    total = 0

    while total < cap:
        block = decoder.decode_next()
        if block is None:
            break
        if not block.is_f32:
            raise UnsupportedSampleFormat(
                f"Only f32 format is currently supported, got {block.sample_format!r}"
            )
        channel = block.channel(0)
        take = min(channel.shape[0], cap - total)
        chunks.append(torch.from_numpy(np.array(channel[:take], dtype=np.float32)))
        total += take

    samples = torch.cat(chunks) if chunks else torch.zeros(0, dtype=torch.float32)
    logger.info("Accumulated %d samples at %d Hz", total, sample_rate)
    return AudioSource(samples=samples, sample_rate=sample_rate, name=getattr(decoder, "name", ""))


def load_source(source, hint: Optional[str] = None, max_duration_sec: int = MAX_DURATION_SEC) -> AudioSource:
    """Open, decode and accumulate source (path or binary file object)."""
    with Decoder(source, hint=hint) as decoder:
        return accumulate(decoder, max_duration_sec=max_duration_sec)


def synthesize_tone(
    frequency: float,
    sample_rate: int = 44100,
    duration_sec: float = 5.0,
) -> AudioSource:
    """AudioSource holding sin(2*pi*f*t), used to visualize a played note."""
    samples = Oscillator.sine(frequency, duration_sec, sample_rate)
    return AudioSource(samples=samples, sample_rate=sample_rate, name=f"tone {frequency:.2f} Hz")


def build_spectrogram(source: AudioSource, config: SpectrogramConfig) -> Spectrogram:
    """
    One row per non-overlapping window of round(sample_rate / resolution_hz)
    samples, floor(sample_rate * duration_sec / window_size) rows in total.
    Rows the source is too short to cover stay zero.
    """
    window_size = config.window_size(source.sample_rate)
    if window_size <= 0:
        raise InvalidWindowSize(
            f"resolution {config.resolution_hz} Hz is too fine for {source.sample_rate} Hz audio"
        )
    if len(source) == 0:
        raise InvalidWindowSize("source has no samples")

    height = source.sample_rate * config.duration_sec // window_size
    rows = make_rows(source.sample_rate, window_size, config)
    logger.info(
        "%s window size: %d, %d rows x %d columns",
        config.algorithm.value,
        window_size,
        height,
        rows.width,
    )

    matrix = torch.zeros((height, rows.width), dtype=torch.uint8)
    produced = 0
    for index, window in enumerate(overlap_chunks(source.samples, window_size)):
        if index >= height or window.shape[0] < window_size:
            break
        matrix[index] = rows.row(window)
        produced += 1

    if produced < height:
        logger.info("Source covers %d of %d rows, rest zero-filled", produced, height)

    return Spectrogram(
        width=rows.width,
        height=height,
        data=matrix.numpy().tobytes(),
        window_size=window_size,
        algorithm=config.algorithm.value,
    )
