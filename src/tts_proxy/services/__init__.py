"""
tts-proxy Services Layer.

Business logic between the HTTP layer and the provider:
    - prompts.py: PromptSystem (named text templates)
    - validators.py: Input validation (ValidationError, HTTP 400)
    - upstream.py: UpstreamClient and AudioStream (provider API over httpx)
    - speech_service.py: SpeechService (request pipeline, error conversion)
"""
from .prompts import PromptSystem
from .speech_service import SpeechResult, SpeechService
from .upstream import AudioStream, SynthesizeRequest, UpstreamClient, UpstreamError
from .validators import ValidationError

__all__ = [
    "PromptSystem",
    "SpeechService",
    "SpeechResult",
    "UpstreamClient",
    "UpstreamError",
    "AudioStream",
    "SynthesizeRequest",
    "ValidationError",
]
