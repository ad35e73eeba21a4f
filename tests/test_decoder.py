"""
Tests for harmony_engine/media: probing, track selection, block decoding and
recovery from bad packets.

Real decodes go through float WAV written with soundfile; error paths inside the
demux/decode loop use a fake container so they are deterministic.
Run from project root: python -m pytest tests/test_decoder.py -v
"""
import sys
import os
import io
from types import SimpleNamespace

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import numpy as np
import pytest
import soundfile as sf
import av
from av.error import FFmpegError

import harmony_engine.media.decoder as decoder_module
from harmony_engine.core.errors import IoFailure, NoCompatibleTrack, UnsupportedFormat
from harmony_engine.core.io import AudioIO
from harmony_engine.core.types import DecodedBlock
from harmony_engine.dsp.oscillators import Oscillator
from harmony_engine.media import CodecRegistry, Decoder, get_codec_registry

SR = 8000


@pytest.fixture
def float_wav(tmp_path):
    path = tmp_path / "a440.wav"
    AudioIO.save_wav(Oscillator.sine(440.0, 0.5, SR), SR, str(path))
    return path


def _drain(decoder):
    blocks = []
    while True:
        block = decoder.decode_next()
        if block is None:
            return blocks
        blocks.append(block)


# -----------------------------------------------------------------------------
# Real decodes
# -----------------------------------------------------------------------------

def test_decodes_float_wav_from_path(float_wav):
    with Decoder(str(float_wav)) as decoder:
        assert decoder.sample_rate == SR
        assert decoder.name == "a440.wav"
        blocks = _drain(decoder)
        # exhausted decoders keep answering None
        assert decoder.decode_next() is None

    assert blocks
    assert all(b.is_f32 for b in blocks)
    samples = np.concatenate([b.channel(0) for b in blocks])
    assert samples.shape[0] == SR // 2
    expected = Oscillator.sine(440.0, 0.5, SR).numpy()
    assert np.allclose(samples, expected, atol=1e-6)


def test_decodes_file_object_with_hint(float_wav):
    data = float_wav.read_bytes()
    with Decoder(io.BytesIO(data), hint="a440.wav") as decoder:
        total = sum(block.frames for block in decoder)
    assert total == SR // 2


def test_decodes_file_object_without_hint(float_wav):
    with Decoder(io.BytesIO(float_wav.read_bytes())) as decoder:
        assert decoder.sample_rate == SR
        assert sum(block.frames for block in decoder) == SR // 2


def test_wrong_hint_does_not_override_content(float_wav):
    with Decoder(io.BytesIO(float_wav.read_bytes()), hint="song.flac") as decoder:
        assert decoder.sample_rate == SR
        assert sum(block.frames for block in decoder) == SR // 2


def test_hint_used_when_content_probing_fails(float_wav, monkeypatch):
    real_open = av.open
    calls = []

    def picky_open(fileobj, mode="r", format=None):
        calls.append(format)
        if format is None:
            raise CorruptPacket("could not find codec parameters")
        return real_open(fileobj, mode=mode, format=format)

    monkeypatch.setattr(decoder_module.av, "open", picky_open)
    with Decoder(io.BytesIO(float_wav.read_bytes()), hint="song.wav") as decoder:
        assert decoder.sample_rate == SR
    assert calls == [None, "wav"]


def test_stereo_blocks_are_planar(tmp_path):
    path = tmp_path / "stereo.wav"
    left = Oscillator.sine(440.0, 0.25, SR).numpy()
    right = np.full_like(left, 0.5)
    sf.write(str(path), np.stack([left, right], axis=1), SR, subtype="FLOAT")

    with Decoder(str(path)) as decoder:
        blocks = _drain(decoder)

    assert all(b.channels == 2 for b in blocks)
    channel0 = np.concatenate([b.channel(0) for b in blocks])
    channel1 = np.concatenate([b.channel(1) for b in blocks])
    assert np.allclose(channel0, left, atol=1e-6)
    assert np.allclose(channel1, 0.5)


def test_integer_pcm_is_not_f32(tmp_path):
    path = tmp_path / "pcm16.wav"
    AudioIO.save_wav(Oscillator.sine(440.0, 0.1, SR), SR, str(path), subtype="PCM_16")
    with Decoder(str(path)) as decoder:
        block = decoder.decode_next()
    assert block is not None
    assert not block.is_f32


# -----------------------------------------------------------------------------
# Open failures
# -----------------------------------------------------------------------------

def test_missing_path_is_io_failure(tmp_path):
    with pytest.raises(IoFailure) as excinfo:
        Decoder(str(tmp_path / "missing.ogg"))
    assert excinfo.value.kind == "io_failure"


def test_empty_source_is_unsupported_format():
    with pytest.raises(UnsupportedFormat):
        Decoder(io.BytesIO(b""))


def test_no_compatible_track(float_wav, monkeypatch):
    monkeypatch.setattr(decoder_module, "get_codec_registry", lambda: CodecRegistry())
    with pytest.raises(NoCompatibleTrack):
        Decoder(str(float_wav))


# -----------------------------------------------------------------------------
# Registry
# -----------------------------------------------------------------------------

def test_registry_is_shared():
    registry = get_codec_registry()
    assert registry is get_codec_registry()
    assert "pcm_f32le" in registry
    assert "h264" not in registry
    assert len(registry) > 0


def test_registry_only_makes_audio_contexts():
    registry = CodecRegistry(["fake"])
    ctx = FakeCodecContext()
    assert registry.make(SimpleNamespace(index=0, type="audio", codec_context=ctx)) is ctx
    assert ctx.opened
    assert registry.make(SimpleNamespace(index=0, type="video", codec_context=ctx)) is None
    other = FakeCodecContext(name="other")
    assert registry.make(SimpleNamespace(index=0, type="audio", codec_context=other)) is None
    registry.register("other")
    assert "other" in registry.names()


def test_registry_rejects_unopenable_or_rateless_contexts():
    registry = CodecRegistry(["fake"])
    broken = SimpleNamespace(index=0, type="audio", codec_context=FakeCodecContext(fails_to_open=True))
    rateless = SimpleNamespace(index=1, type="audio", codec_context=FakeCodecContext(sample_rate=0))
    assert registry.make(broken) is None
    assert registry.make(rateless) is None


def test_registry_carries_opus_extension():
    registry = get_codec_registry()
    assert "opus" in registry or "libopus" in registry


# -----------------------------------------------------------------------------
# Demux/decode loop against a fake container
# -----------------------------------------------------------------------------

class CorruptPacket(FFmpegError):
    def __init__(self, message):
        Exception.__init__(self, message)
        self.message = message

    def __str__(self):
        return self.message


def _frame(values, fmt="flt", sample_rate=SR):
    array = np.asarray(values, dtype=np.float32).reshape(1, -1)
    return SimpleNamespace(
        to_ndarray=lambda: array,
        layout=SimpleNamespace(channels=("FL",)),
        format=SimpleNamespace(name=fmt, is_planar=False),
        sample_rate=sample_rate,
        pts=None,
    )


class FakeCodecContext:
    def __init__(self, name="fake", sample_rate=SR, fails_to_open=False):
        self.name = name
        self.sample_rate = sample_rate
        self.fails_to_open = fails_to_open
        self.opened = False

    def open(self, strict=True):
        if self.fails_to_open:
            raise CorruptPacket("could not open codec")
        self.opened = True

    def decode(self, packet):
        if packet.corrupt:
            raise CorruptPacket("invalid data")
        return [_frame(values) for values in packet.frames]


class FakeStreams(list):
    def __init__(self, streams, best=None):
        super().__init__(streams)
        self._best = best

    def best(self, kind):
        return self._best


class FakeContainer:
    def __init__(self, streams, packets, best=None):
        self.streams = FakeStreams(streams, best)
        self._packets = packets
        self.closed = False

    def demux(self):
        for packet in self._packets:
            if isinstance(packet, Exception):
                raise packet
            yield packet

    def close(self):
        self.closed = True


def _stream(index, kind="audio", **ctx):
    return SimpleNamespace(index=index, type=kind, codec_context=FakeCodecContext(**ctx))


def _packet(stream, frames=((0.1,),), corrupt=False):
    return SimpleNamespace(stream=stream, frames=frames, corrupt=corrupt)


@pytest.fixture
def fake_av(monkeypatch):
    """Install a container factory; returns a setter for the container to hand out."""
    holder = {}
    monkeypatch.setattr(decoder_module.av, "open", lambda *args, **kwargs: holder["container"])
    monkeypatch.setattr(decoder_module, "get_codec_registry", lambda: CodecRegistry(["fake"]))

    def install(container):
        holder["container"] = container
        return container

    return install


def test_corrupted_packet_is_skipped(fake_av):
    audio = _stream(0)
    fake_av(FakeContainer([audio], [
        _packet(audio, frames=((0.1, 0.2),)),
        _packet(audio, corrupt=True),
        _packet(audio, frames=((0.3,),)),
    ]))

    decoder = Decoder(io.BytesIO(b"fake"))
    blocks = _drain(decoder)
    assert [b.channel(0).tolist() for b in blocks] == [
        pytest.approx([0.1, 0.2]),
        pytest.approx([0.3]),
    ]


def test_other_tracks_are_ignored(fake_av):
    video = _stream(0, kind="video")
    audio = _stream(1)
    other_audio = _stream(2)
    fake_av(FakeContainer([video, audio, other_audio], [
        _packet(video, frames=((9.0,),)),
        _packet(audio, frames=((0.5,),)),
        _packet(other_audio, frames=((7.0,),)),
    ]))

    decoder = Decoder(io.BytesIO(b"fake"))
    assert decoder.track_id == 1
    blocks = _drain(decoder)
    assert len(blocks) == 1
    assert blocks[0].channel(0).tolist() == pytest.approx([0.5])


def test_default_track_preferred(fake_av):
    first = _stream(0)
    default = _stream(1)
    fake_av(FakeContainer([first, default], [], best=default))
    decoder = Decoder(io.BytesIO(b"fake"))
    assert decoder.track_id == 1


def test_track_whose_decoder_fails_to_open_is_skipped(fake_av):
    broken = _stream(0, fails_to_open=True)
    working = _stream(1)
    fake_av(FakeContainer([broken, working], [
        _packet(broken, frames=((9.0,),)),
        _packet(working, frames=((0.5,),)),
    ], best=broken))

    decoder = Decoder(io.BytesIO(b"fake"))
    assert decoder.track_id == 1
    assert [b.channel(0).tolist() for b in _drain(decoder)] == [pytest.approx([0.5])]


def test_track_without_sample_rate_is_skipped(fake_av):
    rateless = _stream(0, sample_rate=0)
    working = _stream(1)
    fake_av(FakeContainer([rateless, working], []))
    assert Decoder(io.BytesIO(b"fake")).track_id == 1


def test_no_track_opens(fake_av):
    container = fake_av(FakeContainer([_stream(0, fails_to_open=True), _stream(1, sample_rate=0)], []))
    with pytest.raises(NoCompatibleTrack):
        Decoder(io.BytesIO(b"fake"))
    assert container.closed


def test_packet_with_several_frames(fake_av):
    audio = _stream(0)
    fake_av(FakeContainer([audio], [_packet(audio, frames=((0.1,), (0.2,), (0.3,)))]))
    decoder = Decoder(io.BytesIO(b"fake"))
    values = [float(block.channel(0)[0]) for block in decoder]
    assert values == pytest.approx([0.1, 0.2, 0.3])


def test_read_error_ends_stream(fake_av):
    audio = _stream(0)
    fake_av(FakeContainer([audio], [
        _packet(audio, frames=((0.1,),)),
        OSError("connection reset"),
        _packet(audio, frames=((0.2,),)),
    ]))

    decoder = Decoder(io.BytesIO(b"fake"))
    assert decoder.decode_next() is not None
    assert decoder.decode_next() is None
    assert decoder.decode_next() is None


def test_close_releases_container(fake_av):
    audio = _stream(0)
    container = fake_av(FakeContainer([audio], []))
    with Decoder(io.BytesIO(b"fake")) as decoder:
        assert decoder.decode_next() is None
    assert container.closed


# -----------------------------------------------------------------------------
# DecodedBlock
# -----------------------------------------------------------------------------

def test_block_format_check():
    data = np.zeros((1, 4), dtype=np.float32)
    assert DecodedBlock(SR, "fltp", data).is_f32
    assert not DecodedBlock(SR, "s16", data.astype(np.int16)).is_f32
    assert not DecodedBlock(SR, "dbl", data.astype(np.float64)).is_f32


def test_block_from_packed_stereo_frame():
    interleaved = np.array([[0.1, -0.1, 0.2, -0.2]], dtype=np.float32)
    frame = SimpleNamespace(
        to_ndarray=lambda: interleaved,
        layout=SimpleNamespace(channels=("FL", "FR")),
        format=SimpleNamespace(name="flt", is_planar=False),
        sample_rate=SR,
        pts=0,
    )
    block = DecodedBlock.from_frame(frame)
    assert block.channels == 2
    assert block.frames == 2
    assert block.channel(0).tolist() == pytest.approx([0.1, 0.2])
    assert block.channel(1).tolist() == pytest.approx([-0.1, -0.2])
