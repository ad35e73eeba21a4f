"""
Test-tone generators. Phase always starts at 0 so repeated renders are identical.
"""

import torch
import numpy as np


class Oscillator:
    @staticmethod
    def sine(frequency: float, duration: float, sample_rate: int, phase: float = 0.0) -> torch.Tensor:
        """
        Generates sin(2*pi*f*t + phase) with t = i / sample_rate.

        Args:
            frequency: Frequency (Hz)
            duration: Duration in seconds
            sample_rate: Sample rate
            phase: Initial phase offset (radians)

        Returns:
            float32 tensor of int(duration * sample_rate) samples
        """
        num_samples = int(duration * sample_rate)
        t = torch.arange(num_samples, dtype=torch.float64) / sample_rate
        return torch.sin(2 * np.pi * frequency * t + phase).float()

    @staticmethod
    def chord(frequencies, duration: float, sample_rate: int) -> torch.Tensor:
        """Sum of unit sines, one per frequency (not normalized)."""
        num_samples = int(duration * sample_rate)
        out = torch.zeros(num_samples, dtype=torch.float64)
        t = torch.arange(num_samples, dtype=torch.float64) / sample_rate
        for f in frequencies:
            out += torch.sin(2 * np.pi * f * t)
        return out.float()
