"""
FastAPI Dependency Providers.

Shared objects are created once by create_app() and stored on app.state;
these providers hand them to route handlers through Depends().

    app.state.prompts  -> PromptSystem
    app.state.speech   -> SpeechService

Usage in Route Handlers:
    @router.post("/tts")
    async def tts(req: TTSRequest, service: SpeechService = Depends(get_speech_service)):
        ...
"""
from __future__ import annotations

from fastapi import Request

from tts_proxy.services.prompts import PromptSystem
from tts_proxy.services.speech_service import SpeechService


def get_prompts(request: Request) -> PromptSystem:
    return request.app.state.prompts


def get_speech_service(request: Request) -> SpeechService:
    return request.app.state.speech
