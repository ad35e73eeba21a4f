"""
Error taxonomy for the decode-and-analyze pipeline.
Everything except DecodeSkipped reaches the caller as a single terminal failure.
"""


class SpectrogramError(Exception):
    """Base class for decode/analysis failures."""

    kind = "spectrogram_error"


class UnsupportedFormat(SpectrogramError):
    """The byte source did not probe as any known container."""

    kind = "unsupported_format"


class NoCompatibleTrack(SpectrogramError):
    """No track in the container has a codec we can instantiate."""

    kind = "no_compatible_track"


class UnsupportedSampleFormat(SpectrogramError):
    """A decoded block is not 32-bit float."""

    kind = "unsupported_sample_format"


class InvalidWindowSize(SpectrogramError, ValueError):
    """Resolution/sample-rate combination yields a degenerate window."""

    kind = "invalid_window_size"


class IoFailure(SpectrogramError, OSError):
    """The underlying byte source could not be opened or read."""

    kind = "io_failure"


class DecodeSkipped(SpectrogramError):
    """A single packet failed to decode. Recovered inside the decoder."""

    kind = "decode_skipped"
