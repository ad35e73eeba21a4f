"""
Analysis session: the current source, config and spectrogram for one viewer.
A failed decode or rebuild is logged and re-raised; the previously built
spectrogram (and the source/config that produced it) stay in place.
"""
import logging
import threading
from typing import Any, Dict, Optional

from harmony_engine.analysis.builder import build_spectrogram, load_source, synthesize_tone
from harmony_engine.analysis.config import SpectrogramConfig, resolve_config
from harmony_engine.core.errors import SpectrogramError
from harmony_engine.core.types import AudioSource, Spectrogram

logger = logging.getLogger(__name__)


class AnalysisSession:
    def __init__(self, config: Optional[SpectrogramConfig] = None):
        self.config = config or resolve_config()
        self.source: Optional[AudioSource] = None
        self.spectrogram: Optional[Spectrogram] = None
        self.last_error: Optional[Exception] = None
        self._lock = threading.Lock()

    def _commit(self, source: AudioSource, config: SpectrogramConfig) -> Spectrogram:
        spectrogram = build_spectrogram(source, config)
        self.source = source
        self.config = config
        self.spectrogram = spectrogram
        self.last_error = None
        return spectrogram

    def load(self, source, hint: Optional[str] = None) -> Spectrogram:
        """Decode source and replace the current spectrogram with its analysis."""
        with self._lock:
            try:
                new_source = load_source(source, hint=hint, max_duration_sec=self.config.max_duration_sec)
                return self._commit(new_source, self.config)
            except SpectrogramError as exc:
                self.last_error = exc
                logger.error("Failed to open the file %s: %s", hint or source, exc)
                raise

    def play_tone(self, frequency: float, sample_rate: int = 44100, duration_sec: Optional[float] = None) -> Spectrogram:
        """Replace the source with a synthesized tone and rebuild."""
        if duration_sec is None:
            duration_sec = self.config.duration_sec
        with self._lock:
            try:
                tone = synthesize_tone(frequency, sample_rate=sample_rate, duration_sec=duration_sec)
                return self._commit(tone, self.config)
            except SpectrogramError as exc:
                self.last_error = exc
                logger.error("Failed to build spectrum for tone %.2f Hz: %s", frequency, exc)
                raise

    def update_config(self, overrides: Dict[str, Any]) -> Optional[Spectrogram]:
        """
        Apply partial config overrides (clamped to UI ranges) and rebuild.
        Returns None when no source is loaded yet.
        """
        with self._lock:
            config = resolve_config(overrides, base=self.config.to_dict(), clamp=True)
            if self.source is None:
                self.config = config
                return None
            try:
                return self._commit(self.source, config)
            except SpectrogramError as exc:
                self.last_error = exc
                logger.error("Failed to build spectrum: %s", exc)
                raise
