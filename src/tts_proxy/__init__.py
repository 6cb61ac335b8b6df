"""
tts-proxy: Pass-through Text-to-Speech HTTP Service.

A thin, streaming-aware proxy in front of a single remote text-to-speech
provider (ElevenLabs-compatible API). Clients submit text; the service
applies an optional prompt template, merges per-request voice settings onto
service defaults and relays the provider's audio back.

Key Features:
    - Buffered synthesis (/api/tts) and live chunked streaming (/api/tts/stream)
    - Per-field merge of voice settings over configured defaults
    - Named prompt templates with a fail-soft fallback to "default"
    - Uniform JSON error envelope for every failure
    - Structured logging with request-id correlation
    - Prometheus metrics (/metrics)

Example Usage:
    >>> from tts_proxy.core.config import Settings
    >>> from tts_proxy.main import create_app
    >>>
    >>> settings = Settings(raw={"provider": {"api_key": "sk-...", "default_voice_id": "abc"}})
    >>> app = create_app(settings)
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
