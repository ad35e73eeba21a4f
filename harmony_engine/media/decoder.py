"""
Streaming media decoder: probe a byte source, pick one decodable audio track,
and hand out decoded blocks one at a time.

Opened -> Probed -> TrackSelected -> Decoding -> (end of stream | error).
A packet that fails to decode is logged and skipped; a read failure or the end
of the stream ends decoding quietly, so callers just stop pulling on None.
"""
import logging
import os
from collections import deque
from typing import BinaryIO, Optional, Union

import av
from av.error import FFmpegError

from harmony_engine.core.errors import (
    DecodeSkipped,
    IoFailure,
    NoCompatibleTrack,
    UnsupportedFormat,
)
from harmony_engine.core.types import DecodedBlock
from harmony_engine.media.registry import get_codec_registry

logger = logging.getLogger(__name__)

# File extension -> FFmpeg demuxer name, where the two differ
HINT_FORMATS = {
    "oga": "ogg",
    "opus": "ogg",
    "m4a": "mp4",
    "aac": "aac",
    "mka": "matroska",
    "mkv": "matroska",
    "webm": "matroska",
    "aif": "aiff",
    "aifc": "aiff",
}


def _format_for_hint(hint: Optional[str]) -> Optional[str]:
    if not hint:
        return None
    ext = hint.rsplit(".", 1)[-1].lower().strip()
    if not ext:
        return None
    return HINT_FORMATS.get(ext, ext)


def _probe(fileobj: BinaryIO, hint: Optional[str]):
    """Open the container by content; the hinted demuxer is a fallback for unprobeable bytes."""
    try:
        return av.open(fileobj, mode="r")
    except FFmpegError as exc:
        fmt = _format_for_hint(hint)
        if fmt is None:
            raise UnsupportedFormat(f"unsupported format: {exc}") from exc
        logger.debug("Probing found no format (%s), trying hinted %s", exc, fmt)
        fileobj.seek(0)
        try:
            return av.open(fileobj, mode="r", format=fmt)
        except (FFmpegError, ValueError) as hinted_exc:
            raise UnsupportedFormat(f"unsupported format: {exc}") from hinted_exc


def _candidate_streams(container) -> list:
    """Default audio track first, then every other track in container order."""
    streams = list(container.streams)
    try:
        default = container.streams.best("audio")
    except (AttributeError, ValueError):
        default = None
    if default is None:
        return streams
    return [default] + [s for s in streams if s.index != default.index]


class Decoder:
    """
    Decodes one track of a media source. Owns the container and the codec context.

    source is a filesystem path or a readable, seekable binary file object.
    hint is a filename or extension; paths supply their own.
    """

    def __init__(self, source: Union[str, os.PathLike, BinaryIO], hint: Optional[str] = None):
        self._owns_file = False
        if isinstance(source, (str, os.PathLike)):
            path = os.fspath(source)
            try:
                fileobj = open(path, "rb")
            except OSError as exc:
                raise IoFailure(f"failed to open media {path!r}: {exc}") from exc
            self._owns_file = True
            hint = hint or os.path.splitext(path)[1]
            self.name = os.path.basename(path)
        else:
            fileobj = source
            self.name = hint or getattr(source, "name", "") or ""
        self._file = fileobj

        try:
            self._container = _probe(fileobj, hint)
        except Exception:
            self._close_file()
            raise

        try:
            self._codec_context, self.track_id = self._select_track()
        except Exception:
            self.close()
            raise

        self._packets = self._container.demux()
        self._pending = deque()
        self._finished = False
        logger.info(
            "Decoding %s: track %d, codec %s, %d Hz",
            self.name or "<stream>",
            self.track_id,
            self._codec_context.name,
            self.sample_rate,
        )

    def _select_track(self):
        registry = get_codec_registry()
        for stream in _candidate_streams(self._container):
            ctx = registry.make(stream)
            if ctx is not None:
                return ctx, stream.index
        raise NoCompatibleTrack("no compatible track found")

    @property
    def sample_rate(self) -> int:
        return int(self._codec_context.sample_rate)

    def _decode_packet(self, packet) -> list:
        try:
            frames = self._codec_context.decode(packet)
        except FFmpegError as exc:
            raise DecodeSkipped(str(exc)) from exc
        return [DecodedBlock.from_frame(frame) for frame in frames]

    def decode_next(self) -> Optional[DecodedBlock]:
        """Next decoded block of the selected track, or None once the stream is done."""
        while True:
            if self._pending:
                return self._pending.popleft()
            if self._finished:
                return None

            try:
                packet = next(self._packets)
            except StopIteration:
                self._finished = True
                continue
            except (FFmpegError, OSError) as exc:
                logger.warning("Stopping decode, read failed: %s", exc)
                self._finished = True
                continue

            if packet.stream.index != self.track_id:
                continue

            try:
                self._pending.extend(self._decode_packet(packet))
            except DecodeSkipped as exc:
                logger.warning("Skipping packet because of decode error: %s", exc)

    def __iter__(self):
        return self

    def __next__(self) -> DecodedBlock:
        block = self.decode_next()
        if block is None:
            raise StopIteration
        return block

    def _close_file(self) -> None:
        if self._owns_file:
            self._file.close()

    def close(self) -> None:
        self._container.close()
        self._close_file()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
