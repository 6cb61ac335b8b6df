"""
Shared fixtures: a fake provider served through httpx.MockTransport and
helpers to build settings, clients and apps against it.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from tts_proxy.core.config import Settings
from tts_proxy.main import create_app
from tts_proxy.services.prompts import PromptSystem
from tts_proxy.services.upstream import UpstreamClient

DEFAULT_VOICE = "voice-default"
ALIAS_VOICE = "voice-narrator"
BASE_URL = "https://provider.test/v1"
AUDIO = b"ID3\x04\x00" + bytes(range(256)) * 4


class ChunkedStream(httpx.AsyncByteStream):
    """Response body yielding fixed chunks, optionally failing before chunk N."""

    def __init__(self, chunks: List[bytes], fail_before: Optional[int] = None):
        self.chunks = chunks
        self.fail_before = fail_before
        self.closed = False

    async def __aiter__(self):
        for i, chunk in enumerate(self.chunks):
            if self.fail_before is not None and i == self.fail_before:
                raise httpx.ReadError("connection reset by peer")
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


class FakeProvider:
    """
    Minimal ElevenLabs-style provider.

    Every request is recorded. Set `failures[path_suffix] = (status, body)`
    to make matching paths fail.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.voices = [
            {"voice_id": DEFAULT_VOICE, "name": "Default"},
            {"voice_id": "voice-other", "name": "Other"},
        ]
        self.models = [{"model_id": "eleven_multilingual_v2", "name": "Multilingual v2"}]
        self.audio = AUDIO
        self.stream_chunks = [b"a" * 10, b"b" * 20, b"c" * 5]
        self.fail_stream_before: Optional[int] = None
        self.failures: Dict[str, tuple] = {}
        self.streams: List[ChunkedStream] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        for suffix, (status, body) in self.failures.items():
            if path.endswith(suffix):
                if isinstance(body, (dict, list)):
                    return httpx.Response(status, json=body)
                return httpx.Response(status, content=body)

        if path.endswith("/user"):
            return httpx.Response(200, json={
                "subscription": {"tier": "creator", "character_count": 1200, "character_limit": 100000},
            })
        if path.endswith("/voices"):
            return httpx.Response(200, json={"voices": self.voices})
        if "/voices/" in path:
            voice_id = path.rsplit("/", 1)[-1]
            for voice in self.voices:
                if voice["voice_id"] == voice_id:
                    return httpx.Response(200, json=voice)
            return httpx.Response(404, json={
                "detail": {"status": "voice_not_found", "message": "A voice with that ID does not exist"},
            })
        if path.endswith("/models"):
            return httpx.Response(200, json=self.models)
        if path.endswith("/stream"):
            stream = ChunkedStream(list(self.stream_chunks), self.fail_stream_before)
            self.streams.append(stream)
            return httpx.Response(200, headers={"content-type": "audio/mpeg"}, stream=stream)
        if "/text-to-speech/" in path:
            return httpx.Response(200, headers={"content-type": "audio/mpeg"}, content=self.audio)
        return httpx.Response(404, json={"detail": "not found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def synth_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if "/text-to-speech/" in r.url.path]

    def last_payload(self) -> Dict[str, Any]:
        return json.loads(self.synth_requests[-1].content)


def make_settings(prompts_enabled: bool = False, environment: str = "test", **sections: Any) -> Settings:
    """Settings for tests; keyword sections are merged over the base sections."""
    raw: Dict[str, Any] = {
        "server": {"environment": environment},
        "provider": {
            "base_url": BASE_URL,
            "api_key": "test-key",
            "default_voice_id": DEFAULT_VOICE,
            "voices": {"narrator": ALIAS_VOICE},
        },
        "prompts": {"enabled": prompts_enabled, "default_template": "Read aloud: {{text}}"},
    }
    for name, values in sections.items():
        raw.setdefault(name, {}).update(values)
    return Settings(raw=raw)


def make_client(provider: FakeProvider, settings: Optional[Settings] = None) -> UpstreamClient:
    config = (settings or make_settings()).get_proxy_config()
    return UpstreamClient.from_config(config, transport=provider.transport)


def make_app(provider: FakeProvider, settings: Optional[Settings] = None,
             prompts: Optional[PromptSystem] = None):
    settings = settings or make_settings()
    return create_app(settings, client=make_client(provider, settings), prompts=prompts)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
