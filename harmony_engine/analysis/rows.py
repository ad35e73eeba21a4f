"""
Row producers: turn one analysis window of samples into one row of bytes.

Both variants share only width and row(); each owns its own setup (FFT input
buffer and taper vs. Goertzel filter bank), since their column geometry differs
(frequency bins vs. piano keys).
"""
import torch

from harmony_engine.analysis.config import Algorithm, MAX_AUDIBLE_FREQ, SpectrogramConfig
from harmony_engine.dsp.goertzel import PIANO_KEYS, PIANO_KEY_FREQUENCIES, GoertzelBank
from harmony_engine.dsp.window import hann

MIN_MAGNITUDE = 1e-10

# Goertzel layout: 3 px per key, one padding column in front of every C (C1..C8)
KEY_WIDTH_PX = 3
FIRST_C_KEY = 3


def quantize_log(magnitudes: torch.Tensor, dynamic_range: float) -> torch.Tensor:
    """clamp(log10(max(m, 1e-10)) / dynamic_range, 0, 1) * 255, truncated to uint8."""
    s = torch.log10(torch.clamp(magnitudes, min=MIN_MAGNITUDE)) / dynamic_range
    s = torch.clamp(s, 0.0, 1.0)
    return (s * 255.0).to(torch.uint8)


def quantize_sqrt(magnitudes: torch.Tensor) -> torch.Tensor:
    """clamp(sqrt(m), 0, 1) * 255, truncated to uint8."""
    s = torch.clamp(torch.sqrt(torch.clamp(magnitudes, min=0.0)), 0.0, 1.0)
    return (s * 255.0).to(torch.uint8)


def fourier_bins(sample_rate: int, window_size: int) -> int:
    """Bins from DC up to MAX_AUDIBLE_FREQ, capped at the FFT output length."""
    bins = 1 + int(MAX_AUDIBLE_FREQ / sample_rate * window_size)
    return min(bins, window_size // 2 + 1)


def piano_columns() -> torch.Tensor:
    """
    Column -> key index map for the Goertzel layout.
    Padding columns point at index PIANO_KEYS, a slot that is always zero.
    """
    columns = []
    for key in range(PIANO_KEYS):
        if key >= FIRST_C_KEY and (key - FIRST_C_KEY) % 12 == 0:
            columns.append(PIANO_KEYS)
        columns.extend([key] * KEY_WIDTH_PX)
    return torch.tensor(columns, dtype=torch.long)


class FourierRows:
    algorithm = Algorithm.FOURIER

    def __init__(self, sample_rate: int, window_size: int, config: SpectrogramConfig):
        self.window_size = window_size
        self.width = fourier_bins(sample_rate, window_size)
        self.dynamic_range = config.dynamic_range
        self.relative = config.relative
        self._taper = hann(window_size) if config.apply_window else None
        self._input = torch.zeros(window_size, dtype=torch.float32)

    def row(self, window: torch.Tensor) -> torch.Tensor:
        buf = self._input
        buf.copy_(window)
        if self._taper is not None:
            buf.mul_(self._taper)
        magnitudes = torch.abs(torch.fft.rfft(buf)[: self.width])
        if self.relative:
            energy = torch.sqrt(torch.sum(buf.double() ** 2)).item()
            magnitudes = magnitudes / max(energy, MIN_MAGNITUDE)
        return quantize_log(magnitudes, self.dynamic_range)


class GoertzelRows:
    algorithm = Algorithm.GOERTZEL_BANK

    def __init__(self, sample_rate: int, window_size: int, config: SpectrogramConfig):
        self.window_size = window_size
        self.bank = GoertzelBank(sample_rate, PIANO_KEY_FREQUENCIES)
        self._columns = piano_columns()
        self.width = int(self._columns.shape[0])
        self._pad = torch.zeros(1, dtype=torch.uint8)

    def row(self, window: torch.Tensor) -> torch.Tensor:
        self.bank.process_block(window)
        values = quantize_sqrt(self.bank.magnitudes(self.window_size))
        self.bank.reset()
        return torch.cat([values, self._pad])[self._columns]


def make_rows(sample_rate: int, window_size: int, config: SpectrogramConfig):
    """Row producer for config.algorithm."""
    if config.algorithm is Algorithm.FOURIER:
        return FourierRows(sample_rate, window_size, config)
    if config.algorithm is Algorithm.GOERTZEL_BANK:
        return GoertzelRows(sample_rate, window_size, config)
    raise ValueError(f"Unknown algorithm: {config.algorithm}")
