"""
Goertzel single-frequency energy detectors.
https://en.wikipedia.org/wiki/Goertzel_algorithm

The recurrence is s[n] = x[n] + 2*cos(2*pi*f/sr) * s[n-1] - s[n-2]; after a
block of N samples the magnitude at f is 2*|X(f)|/N, so a unit sine at f reads
as ~1.0. Per frequency this costs O(N), which beats a full FFT when only a
small fixed set of frequencies (the 88 piano keys) is of interest.
"""
import math
from typing import Iterable, Sequence

import numpy as np
import torch
import torchaudio.functional as F

PIANO_KEYS = 88
# A4 is key 48 when A0 is key 0
A4_KEY = 48
A4_FREQ = 440.0


def piano_key_frequency(key: int) -> float:
    """Equal-tempered frequency of piano key 0..87 (A0..C8)."""
    return A4_FREQ * 2.0 ** ((key - A4_KEY) / 12.0)


PIANO_KEY_FREQUENCIES = tuple(piano_key_frequency(k) for k in range(PIANO_KEYS))


def _coeff(sample_rate: int, target_frequency: float) -> float:
    return 2.0 * math.cos(2.0 * math.pi * target_frequency / sample_rate)


def goertzel(samples: Sequence[float], sample_rate: int, target_frequency: float) -> float:
    """Stateless Goertzel: magnitude of target_frequency over the whole of samples."""
    n = len(samples)
    if n == 0:
        return 0.0
    coeff = _coeff(sample_rate, target_frequency)
    q1 = 0.0
    q2 = 0.0
    for sample in samples:
        q0 = float(sample) + coeff * q1 - q2
        q2 = q1
        q1 = q0
    power = max(q1 * q1 + q2 * q2 - q1 * q2 * coeff, 0.0)
    return 2.0 * math.sqrt(power) / n


class GoertzelFilter:
    """
    Stateful Goertzel filter for one target frequency.
    Feed samples in order with process(); read magnitude(); reset() between blocks.
    """

    def __init__(self, sample_rate: int, target_frequency: float):
        self.sample_rate = sample_rate
        self.target_frequency = target_frequency
        self.coeff = _coeff(sample_rate, target_frequency)
        self.q0 = 0.0
        self.q1 = 0.0
        self.q2 = 0.0

    def process(self, sample: float) -> None:
        self.q0 = sample + self.coeff * self.q1 - self.q2
        self.q2 = self.q1
        self.q1 = self.q0

    def magnitude(self, block_size: int) -> float:
        """Normalized magnitude of the samples seen since the last reset. Does not mutate state."""
        if block_size <= 0:
            return 0.0
        # rounding can push the radicand slightly below zero
        power = max(self.q1 * self.q1 + self.q2 * self.q2 - self.q1 * self.q2 * self.coeff, 0.0)
        return 2.0 * math.sqrt(power) / block_size

    def reset(self) -> None:
        self.q0 = 0.0
        self.q1 = 0.0
        self.q2 = 0.0


class GoertzelBank:
    """
    One Goertzel filter per frequency, state held as float64 vectors.

    process() broadcasts a single sample to every filter. process_block() runs
    the same recurrence over a whole block as a batched IIR filter
    (b = [1, 0, 0], a = [1, -coeff, 1]), which is what makes a 88-key bank
    practical over minutes of audio.
    """

    def __init__(self, sample_rate: int, frequencies: Iterable[float] = PIANO_KEY_FREQUENCIES):
        self.sample_rate = sample_rate
        self.frequencies = torch.tensor(list(frequencies), dtype=torch.float64)
        if self.frequencies.dim() != 1 or self.frequencies.numel() == 0:
            raise ValueError("GoertzelBank needs at least one frequency")
        self.coeffs = 2.0 * torch.cos(2.0 * np.pi * self.frequencies / sample_rate)

        ones = torch.ones_like(self.coeffs)
        zeros = torch.zeros_like(self.coeffs)
        self._a = torch.stack([ones, -self.coeffs, ones], dim=1)
        self._b = torch.stack([ones, zeros, zeros], dim=1)

        self.q1 = torch.zeros_like(self.coeffs)
        self.q2 = torch.zeros_like(self.coeffs)

    def __len__(self) -> int:
        return int(self.coeffs.shape[0])

    def filters(self) -> list:
        """Equivalent standalone filters (fresh state)."""
        return [GoertzelFilter(self.sample_rate, float(f)) for f in self.frequencies]

    def process(self, sample: float) -> None:
        q0 = sample + self.coeffs * self.q1 - self.q2
        self.q2 = self.q1
        self.q1 = q0

    def process_block(self, samples) -> None:
        """Advance every filter by all of samples, in order."""
        x = torch.as_tensor(samples, dtype=torch.float64).reshape(-1)
        n = x.shape[0]
        if n == 0:
            return

        # Two leading inputs that drive a zero-state filter to (s[-2], s[-1]) = (q2, q1),
        # so state carried over from earlier calls is honoured.
        prefix = torch.stack([self.q2, self.q1 - self.coeffs * self.q2], dim=1)
        waveform = torch.cat([prefix, x.expand(len(self), n)], dim=1)

        out = F.lfilter(waveform, self._a, self._b, clamp=False, batching=True)
        self.q1 = out[:, -1].clone()
        self.q2 = out[:, -2].clone()

    def magnitudes(self, block_size: int) -> torch.Tensor:
        """Per-filter normalized magnitude, float64 tensor of len(self)."""
        if block_size <= 0:
            return torch.zeros_like(self.coeffs)
        power = self.q1 * self.q1 + self.q2 * self.q2 - self.q1 * self.q2 * self.coeffs
        return 2.0 * torch.sqrt(torch.clamp(power, min=0.0)) / block_size

    def reset(self) -> None:
        self.q1 = torch.zeros_like(self.coeffs)
        self.q2 = torch.zeros_like(self.coeffs)
