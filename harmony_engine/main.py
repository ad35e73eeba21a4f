from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
import logging
import base64
import io
from typing import Optional

from harmony_engine.analysis.session import AnalysisSession
from harmony_engine.core.errors import SpectrogramError
from harmony_engine.core.io import AudioIO
from harmony_engine.core.types import Spectrogram
from harmony_engine.dsp.goertzel import PIANO_KEYS, piano_key_frequency

# Configure Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("harmony-engine")

app = FastAPI(
    title="Harmony Engine",
    version="0.1.0",
    description="Spectrogram and piano-note energy analysis"
)

# CORS (Allow Frontend)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], # Allow any local port
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One viewer, one session
session = AnalysisSession()


def _spectrogram_payload(spectrogram: Optional[Spectrogram]) -> Optional[dict]:
    if spectrogram is None:
        return None
    return {
        "width": spectrogram.width,
        "height": spectrogram.height,
        "algorithm": spectrogram.algorithm,
        "window_size": spectrogram.window_size,
        "data": base64.b64encode(spectrogram.data).decode("utf-8"),
    }


def _error(exc: Exception, status_code: int = 422) -> JSONResponse:
    kind = getattr(exc, "kind", "invalid_request")
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "error": kind, "message": str(exc)},
    )


def _tone_request(data: dict):
    """Validated (frequency, sample_rate, duration_sec) from a /tone body."""
    sample_rate = int(data.get("sample_rate", 44100))
    if sample_rate <= 0:
        raise ValueError(f"sample_rate must be > 0, got {sample_rate}")

    duration_sec = data.get("duration_sec")
    if duration_sec is not None:
        duration_sec = float(duration_sec)
        if not duration_sec > 0:
            raise ValueError(f"duration_sec must be > 0, got {duration_sec}")

    if "key" in data:
        key = int(data["key"])
        if not 0 <= key < PIANO_KEYS:
            raise ValueError(f"key must be in 0..{PIANO_KEYS - 1}")
        frequency = piano_key_frequency(key)
    elif "frequency" in data:
        frequency = float(data["frequency"])
        if not frequency > 0:
            raise ValueError(f"frequency must be > 0, got {frequency}")
    else:
        raise ValueError("frequency or key is required")
    return frequency, sample_rate, duration_sec


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "harmony-engine"}


@app.post("/analyze")
async def analyze(request: Request, filename: Optional[str] = None):
    """
    Decodes the raw request body (any container/codec FFmpeg knows) and
    returns its spectrogram. filename is only used as a format hint.
    """
    body = await request.body()
    logger.info("Analyze request: %s (%d bytes)", filename or "<unnamed>", len(body))
    try:
        spectrogram = await run_in_threadpool(session.load, io.BytesIO(body), filename)
    except SpectrogramError as exc:
        return _error(exc)

    return {
        "source": session.source.name,
        "sample_rate": session.source.sample_rate,
        "samples": len(session.source),
        "config": session.config.to_dict(),
        "spectrogram": _spectrogram_payload(spectrogram),
    }


@app.post("/tone")
async def tone(data: dict):
    """
    Replaces the source with a sine tone: { frequency | key, sample_rate?, duration_sec? }.
    Returns JSON with base64-encoded float WAV and the spectrogram.
    """
    try:
        frequency, sample_rate, duration_sec = _tone_request(data)
        spectrogram = await run_in_threadpool(session.play_tone, frequency, sample_rate, duration_sec)
    except (SpectrogramError, ValueError, TypeError) as exc:
        return _error(exc)

    wav_bytes = AudioIO.to_bytes(session.source.samples, sample_rate, format="WAV")
    return {
        "frequency": frequency,
        "audio": base64.b64encode(wav_bytes).decode("utf-8"),
        "spectrogram": _spectrogram_payload(spectrogram),
    }


@app.post("/config")
async def update_config(overrides: dict):
    """Partial config update; rebuilds the spectrogram if a source is loaded."""
    try:
        spectrogram = await run_in_threadpool(session.update_config, overrides)
    except (SpectrogramError, ValueError, TypeError) as exc:
        return _error(exc)
    return {
        "config": session.config.to_dict(),
        "spectrogram": _spectrogram_payload(spectrogram),
    }


@app.get("/spectrogram")
async def get_spectrogram():
    if session.spectrogram is None:
        return _error(LookupError("no spectrogram built yet"), status_code=404)
    return {
        "source": session.source.name if session.source else None,
        "config": session.config.to_dict(),
        "spectrogram": _spectrogram_payload(session.spectrogram),
    }


if __name__ == "__main__":
    uvicorn.run("harmony_engine.main:app", host="0.0.0.0", port=8000, reload=True)
