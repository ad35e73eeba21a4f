"""
Process-wide audio codec registry.
Built once on first use from the decoders the linked FFmpeg enables (the default
set) plus the extension codecs below; read-only afterwards and shared by every
Decoder.
"""
import functools
import logging
from typing import Iterable, Optional

import av
from av.error import FFmpegError

logger = logging.getLogger(__name__)

# Registered on top of the default set, never as part of it. Each entry lists
# the FFmpeg decoders that can serve the codec; any that exist are accepted.
EXTENSION_CODECS = {
    "opus": ("opus", "libopus"),
}


def _audio_decoder(name: str):
    """FFmpeg decoder named name if it exists and decodes audio, else None."""
    try:
        codec = av.codec.Codec(name, "r")
    except (ValueError, FFmpegError):
        return None
    if codec.type != "audio":
        return None
    return codec


def _extension_decoders() -> frozenset:
    return frozenset(name for names in EXTENSION_CODECS.values() for name in names)


class CodecRegistry:
    def __init__(self, decoders: Iterable[str] = ()):
        self._decoders = set(decoders)

    def register(self, name: str) -> None:
        self._decoders.add(name)

    def __contains__(self, name: str) -> bool:
        return name in self._decoders

    def __len__(self) -> int:
        return len(self._decoders)

    def names(self) -> frozenset:
        return frozenset(self._decoders)

    def make(self, stream) -> Optional[object]:
        """
        Opened codec context able to decode stream, or None if the registry has
        no decoder for it, the decoder fails to open, or the stream carries no
        sample rate.
        """
        if getattr(stream, "type", None) != "audio":
            return None
        ctx = getattr(stream, "codec_context", None)
        if ctx is None or ctx.name not in self._decoders:
            return None
        try:
            ctx.open(strict=False)
        except (FFmpegError, ValueError) as exc:
            logger.info("Track %s: %s decoder failed to open (%s)", getattr(stream, "index", "?"), ctx.name, exc)
            return None
        if (ctx.sample_rate or 0) <= 0:
            logger.info("Track %s: no sample rate, skipping", getattr(stream, "index", "?"))
            return None
        return ctx


def build_default_registry() -> CodecRegistry:
    registry = CodecRegistry()
    extension = _extension_decoders()
    for name in sorted(av.codecs_available):
        if name in extension:
            continue
        codec = _audio_decoder(name)
        if codec is not None and codec.name not in extension:
            registry.register(codec.name)
    default_count = len(registry)

    for codec_name, candidates in EXTENSION_CODECS.items():
        available = [c for c in candidates if _audio_decoder(c) is not None]
        if not available:
            logger.warning("Extension codec %s has no decoder in this FFmpeg build", codec_name)
            continue
        for decoder_name in available:
            registry.register(decoder_name)
        logger.info("Extension codec %s: %s", codec_name, ", ".join(available))

    logger.info("Codec registry ready: %d default + %d extension decoders", default_count, len(registry) - default_count)
    return registry


@functools.lru_cache(maxsize=None)
def get_codec_registry() -> CodecRegistry:
    """The shared registry, constructed on first call."""
    return build_default_registry()
