"""
tts-proxy API Routes.

Endpoints (prefix /api):
    POST   /tts                         - Buffered synthesis (audio/mpeg)
    POST   /tts/stream                  - Chunked streaming synthesis
    GET    /voices                      - Provider voices with is_default
    GET    /voices/{voice_id}           - One voice with is_default
    GET    /models                      - Provider models
    GET    /status                      - Provider reachability and config
    GET    /prompts/templates           - Template list (or disabled notice)
    POST   /prompts/templates           - Add/overwrite a template
    DELETE /prompts/templates/{name}    - Remove a template
    POST   /prompts/preview             - Render a template

Operational (no prefix):
    GET    /health                      - Liveness, no provider call
    GET    /metrics                     - Prometheus metrics

Handlers never build error responses themselves: they raise ApiError
subclasses (or let the service raise them) and the boundary in
api/errors.py renders the envelope.

Example:
    curl -X POST http://localhost:3000/api/tts \\
        -H "Content-Type: application/json" \\
        -d '{"text": "Hello there"}' \\
        --output speech.mp3
"""
from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Response
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from tts_proxy import __version__
from tts_proxy.api.dependencies import get_prompts, get_speech_service
from tts_proxy.api.schemas import (
    PromptPreviewRequest,
    PromptPreviewResponse,
    PromptTemplateRequest,
    StatusResponse,
    TemplateMutationResponse,
    TTSRequest,
)
from tts_proxy.core.metrics import metrics
from tts_proxy.services.prompts import PromptSystem
from tts_proxy.services.speech_service import SpeechService

AUDIO_MEDIA_TYPE = "audio/mpeg"

router = APIRouter(prefix="/api")
ops_router = APIRouter()


def _attachment(prefix: str) -> str:
    return f'attachment; filename="{prefix}_{int(time.time() * 1000)}.mp3"'


def _overrides(req: TTSRequest):
    return req.voice_settings.as_overrides() if req.voice_settings else None


# ─────────────────────────────────────────────────────────────────────────────
# Synthesis
# ─────────────────────────────────────────────────────────────────────────────

@router.post("/tts", response_class=Response)
async def tts(req: TTSRequest, service: SpeechService = Depends(get_speech_service)):
    """
    Buffered synthesis.

    Returns:
        audio/mpeg body with Content-Disposition
        attachment; filename="tts_<epoch_ms>.mp3".
    """
    result = await service.synthesize(
        text=req.text,
        voice_id=req.voice_id,
        model_id=req.model_id,
        voice_settings=_overrides(req),
        template_name=req.template_name,
    )
    return Response(
        content=result.audio,
        media_type=AUDIO_MEDIA_TYPE,
        headers={"Content-Disposition": _attachment("tts")},
    )


@router.post("/tts/stream")
async def tts_stream(req: TTSRequest, service: SpeechService = Depends(get_speech_service)):
    """
    Streaming synthesis.

    Provider chunks are relayed as they arrive. Failures before the first
    byte get the normal error envelope; a failure after that aborts the
    response, so the client sees a truncated body. The upstream response
    is closed by the background task even if the client disconnects.
    """
    stream = await service.synthesize_stream(
        text=req.text,
        voice_id=req.voice_id,
        model_id=req.model_id,
        voice_settings=_overrides(req),
        template_name=req.template_name,
    )
    return StreamingResponse(
        stream,
        media_type=AUDIO_MEDIA_TYPE,
        headers={
            "Transfer-Encoding": "chunked",
            "Content-Disposition": _attachment("tts_stream"),
        },
        background=BackgroundTask(stream.aclose),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Metadata
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/voices")
async def voices(service: SpeechService = Depends(get_speech_service)):
    return {"voices": await service.list_voices()}


@router.get("/voices/{voice_id}")
async def voice(voice_id: str, service: SpeechService = Depends(get_speech_service)):
    return await service.get_voice(voice_id)


@router.get("/models")
async def models(service: SpeechService = Depends(get_speech_service)):
    return {"models": await service.list_models()}


@router.get("/status", response_model=StatusResponse)
async def status(service: SpeechService = Depends(get_speech_service)):
    """Live provider probe; api_connected is false rather than an error."""
    return await service.status()


# ─────────────────────────────────────────────────────────────────────────────
# Prompt templates
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/prompts/templates")
def list_templates(prompts: PromptSystem = Depends(get_prompts)):
    if not prompts.enabled:
        return {"enabled": False, "message": "prompt system is disabled"}
    return {"enabled": True, "templates": prompts.list_templates()}


@router.post("/prompts/templates", response_model=TemplateMutationResponse)
def add_template(req: PromptTemplateRequest, service: SpeechService = Depends(get_speech_service)):
    service.add_template(req.name, req.template)
    return {"success": True, "message": "template saved", "name": req.name}


@router.delete("/prompts/templates/{name}", response_model=TemplateMutationResponse)
def remove_template(name: str, service: SpeechService = Depends(get_speech_service)):
    service.remove_template(name)
    return {"success": True, "message": "template removed", "name": name}


@router.post("/prompts/preview", response_model=PromptPreviewResponse)
def preview(req: PromptPreviewRequest, service: SpeechService = Depends(get_speech_service)):
    return service.preview(req.text, req.template_name)


# ─────────────────────────────────────────────────────────────────────────────
# Operational
# ─────────────────────────────────────────────────────────────────────────────

@ops_router.get("/health")
def health():
    """Liveness probe. Does not contact the provider."""
    return {"status": "ok", "version": __version__}


@ops_router.get("/metrics")
def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
