"""
Window functions for tapering analysis blocks before the FFT.
"""
import numpy as np
import torch


def hann(sample_count: int) -> torch.Tensor:
    """
    Symmetric Hann window: w[i] = 0.5 - 0.5 * cos(2*pi*i / (N - 1)).
    Only the first ceil(N/2) values are evaluated; the rest is mirrored.
    """
    if sample_count < 0:
        raise ValueError(f"sample_count must be >= 0, got {sample_count}")
    if sample_count == 0:
        return torch.zeros(0)
    if sample_count == 1:
        return torch.zeros(1)

    scale = 2.0 * np.pi / (sample_count - 1)
    half = (sample_count + 1) // 2
    i = torch.arange(half, dtype=torch.float64)
    first = 0.5 - 0.5 * torch.cos(scale * i)

    # odd N: the center sample is not repeated
    mirrored = torch.flip(first[: sample_count - half], dims=[0])
    return torch.cat([first, mirrored]).float()
