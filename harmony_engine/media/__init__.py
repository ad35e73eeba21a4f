"""
Container probing, track selection and streaming decode (FFmpeg via PyAV).
"""
from harmony_engine.media.decoder import Decoder
from harmony_engine.media.registry import CodecRegistry, get_codec_registry

__all__ = ["Decoder", "CodecRegistry", "get_codec_registry"]
