from dataclasses import dataclass
from typing import Optional

import numpy as np
import torch

# PyAV sample format names that carry 32-bit float samples (packed / planar)
F32_FORMATS = frozenset({"flt", "fltp"})


@dataclass
class AudioSource:
    samples: torch.Tensor  # float32, 1-D, channel 0 only
    sample_rate: int
    name: str = ""

    def __len__(self) -> int:
        return int(self.samples.shape[-1])

    @property
    def duration_sec(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return len(self) / self.sample_rate


@dataclass(frozen=True)
class Spectrogram:
    """Row-major 8-bit grid; row 0 is the earliest analysis window."""
    width: int
    height: int
    data: bytes
    window_size: int = 0
    algorithm: str = ""

    def __post_init__(self):
        if len(self.data) != self.width * self.height:
            raise ValueError(
                f"spectrogram data is {len(self.data)} bytes, expected {self.width}x{self.height}"
            )

    def to_numpy(self) -> np.ndarray:
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width)

    def row(self, index: int) -> bytes:
        start = index * self.width
        return self.data[start:start + self.width]


@dataclass
class DecodedBlock:
    """
    One decoded audio frame of the selected track.
    data is planar: shape (channels, frames), dtype as decoded.
    """
    sample_rate: int
    sample_format: str
    data: np.ndarray
    pts: Optional[int] = None

    @property
    def is_f32(self) -> bool:
        return self.sample_format in F32_FORMATS and self.data.dtype == np.float32

    @property
    def frames(self) -> int:
        return int(self.data.shape[-1])

    @property
    def channels(self) -> int:
        return int(self.data.shape[0])

    def channel(self, index: int) -> np.ndarray:
        return self.data[index]

    @classmethod
    def from_frame(cls, frame) -> "DecodedBlock":
        """Build a planar block from a PyAV AudioFrame."""
        array = frame.to_ndarray()
        channels = len(frame.layout.channels)
        if not frame.format.is_planar:
            # packed frames are interleaved; normalize to (channels, frames)
            array = array.reshape(-1, channels).T
        return cls(
            sample_rate=int(frame.sample_rate),
            sample_format=frame.format.name,
            data=array,
            pts=frame.pts,
        )
