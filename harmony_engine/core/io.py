import soundfile as sf
import torch
import numpy as np
import io


class AudioIO:
    @staticmethod
    def _to_numpy(waveform) -> np.ndarray:
        if isinstance(waveform, torch.Tensor):
            data = waveform.detach().cpu().numpy()
        else:
            data = np.asarray(waveform)
        # Clamp to avoid wrap-around clipping
        return np.clip(data, -1.0, 1.0).astype(np.float32)

    @staticmethod
    def save_wav(waveform, sample_rate: int, path, subtype: str = "FLOAT"):
        """
        Saves a mono waveform to a WAV file (path or binary file object).
        Defaults to 32-bit float samples, the only format the analyzer accepts.
        """
        sf.write(path, AudioIO._to_numpy(waveform), sample_rate, format="WAV", subtype=subtype)

    @staticmethod
    def to_bytes(waveform, sample_rate: int, format: str = "WAV", subtype: str = "FLOAT") -> bytes:
        """Returns audio file as bytes (for API responses)."""
        buffer = io.BytesIO()
        sf.write(buffer, AudioIO._to_numpy(waveform), sample_rate, format=format, subtype=subtype)
        return buffer.getvalue()
