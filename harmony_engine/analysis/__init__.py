"""
Spectrogram analysis: configuration, row producers, builder and session.
"""
from harmony_engine.analysis.config import (
    Algorithm,
    SpectrogramConfig,
    clamp_config,
    resolve_config,
)
from harmony_engine.analysis.builder import (
    accumulate,
    build_spectrogram,
    load_source,
    synthesize_tone,
)
from harmony_engine.analysis.session import AnalysisSession

__all__ = [
    "Algorithm",
    "SpectrogramConfig",
    "clamp_config",
    "resolve_config",
    "accumulate",
    "build_spectrogram",
    "load_source",
    "synthesize_tone",
    "AnalysisSession",
]
