"""
Upstream Client for the ElevenLabs-compatible provider API.

One httpx.AsyncClient per process, created with the provider's base URL,
the xi-api-key credential header and the configured timeout. All
defaults (model id, voice settings) are fixed at construction.

Provider Endpoints:
    GET  /user                          - connectivity probe
    GET  /voices                        - {"voices": [...]}
    GET  /voices/{voice_id}             - single voice record
    GET  /models                        - [...]
    POST /text-to-speech/{voice_id}         - buffered audio
    POST /text-to-speech/{voice_id}/stream  - chunked audio

Error Contract:
    - check_connection() never raises; it returns False on any failure.
    - Data operations raise UpstreamError("<operation> failed: <detail>")
      carrying the provider status (None for transport failures).
    - A failing synthesis logs the provider's error body: parsed JSON when
      possible, otherwise a hex preview of its first 50 bytes.

Streaming:
    synthesize_stream() returns once the provider has answered 2xx. The
    returned AudioStream forwards provider chunks as they arrive and owns
    the open response until exhausted, failed or closed.

Usage:
    client = UpstreamClient.from_config(config)
    audio = await client.synthesize(SynthesizeRequest(text="hello", voice_id="abc"))

    stream = await client.synthesize_stream(SynthesizeRequest(text="hello"))
    async for chunk in stream:
        ...
    await client.aclose()
"""
from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from tts_proxy.core.config import ProviderConfig, ProxyConfig, SynthesisDefaults
from tts_proxy.core.logging import debug, error, get_logger, info, verbose, warn
from tts_proxy.core.metrics import metrics

_LOG = get_logger("tts-proxy.upstream")

_ERROR_PREVIEW_BYTES = 50


class UpstreamError(Exception):
    """
    Raised when a provider call fails.

    Attributes:
        message: "<operation> failed: <detail>".
        status_code: Provider HTTP status, or None when no response arrived.
        context: Log-only fields (voice_id, text_length).
    """

    def __init__(self, message: str, status_code: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code
        self.context = context or {}
        super().__init__(message)


@dataclass
class SynthesizeRequest:
    """
    One synthesis call.

    Attributes:
        text: Text to synthesize (already templated).
        voice_id: Provider voice id (None = configured default).
        model_id: Model override (None/empty = service default).
        voice_settings: Partial voice settings merged over the defaults.
    """
    text: str
    voice_id: Optional[str] = None
    model_id: Optional[str] = None
    voice_settings: Optional[Dict[str, Any]] = None


def _provider_detail(response: httpx.Response) -> Optional[str]:
    """Extract the provider's error message from a JSON error body."""
    try:
        data = response.json()
    except ValueError:
        return None
    detail = data.get("detail") if isinstance(data, dict) else None
    if isinstance(detail, dict):
        return detail.get("message") or detail.get("status")
    if isinstance(detail, str):
        return detail
    return None


def _describe(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        detail = _provider_detail(exc.response)
        return f"provider returned {status}: {detail}" if detail else f"provider returned {status}"
    return str(exc) or type(exc).__name__


def _status_of(exc: Exception) -> Optional[int]:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


class AudioStream:
    """
    Async iterable over a provider's streaming synthesis response.

    Chunks are forwarded as the provider sends them unless a chunk_size
    hint is set, in which case httpx re-chunks to that size.

    Lifecycle:
        - Exhausted: logs stream_completed with the byte total.
        - Transport error mid-stream: logs stream_failed and re-raises, so
          the server aborts the response (client sees a truncated body).
        - Consumer cancelled (client disconnect): logs stream_cancelled.
        In every case the provider response is closed. aclose() is
        idempotent and safe to call from a response background task.
    """

    def __init__(self, response: httpx.Response, chunk_size: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None):
        self._response = response
        self._chunk_size = chunk_size or None
        self._context = context or {}
        self._closed = False
        self._started = time.perf_counter()
        self.total_bytes = 0
        self.chunks = 0
        metrics.stream_opened()

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes(self._chunk_size):
                self.total_bytes += len(chunk)
                self.chunks += 1
                yield chunk
            info(_LOG, "stream_completed", total_bytes=self.total_bytes, chunks=self.chunks,
                 seconds=round(time.perf_counter() - self._started, 3), **self._context)
        except httpx.HTTPError as e:
            error(_LOG, "stream_failed", error=str(e) or type(e).__name__,
                  total_bytes=self.total_bytes, **self._context)
            raise
        except (GeneratorExit, asyncio.CancelledError):
            warn(_LOG, "stream_cancelled", total_bytes=self.total_bytes, **self._context)
            raise
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        """Release the provider response. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        metrics.stream_closed()
        metrics.add_audio_bytes("stream", self.total_bytes)
        await self._response.aclose()


class UpstreamClient:
    """
    Async client for the provider API.

    Args:
        provider: Endpoint, credential, default voice and timeout.
        defaults: Model id and voice-setting defaults for synthesis.
        chunk_size: Streaming re-chunk hint (0/None = provider chunks as-is).
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        provider: ProviderConfig,
        defaults: SynthesisDefaults,
        chunk_size: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._provider = provider
        self._defaults = defaults
        self._chunk_size = chunk_size or None
        self._client = httpx.AsyncClient(
            base_url=provider.base_url,
            headers={
                "xi-api-key": provider.api_key,
                "Content-Type": "application/json",
            },
            timeout=provider.timeout_s,
            transport=transport,
        )
        debug(_LOG, "upstream_client_init", base_url=provider.base_url, default_model=defaults.model_id)

    @classmethod
    def from_config(cls, config: ProxyConfig,
                    transport: Optional[httpx.AsyncBaseTransport] = None) -> "UpstreamClient":
        return cls(config.provider, config.synthesis, config.streaming.chunk_size, transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ─────────────────────────────────────────────────────────────────────────
    # Metadata
    # ─────────────────────────────────────────────────────────────────────────

    async def check_connection(self) -> bool:
        """
        Probe the provider with GET /user.

        Logs the subscription tier and character usage on success.

        Returns:
            True if the provider answered 2xx, False on any failure.
        """
        try:
            response = await self._client.get("/user")
            response.raise_for_status()
            subscription = response.json().get("subscription", {}) or {}
        except Exception as e:
            error(_LOG, "upstream_connection_failed", error=_describe(e), status=_status_of(e))
            return False

        info(_LOG, "upstream_connected",
             tier=subscription.get("tier"),
             character_count=subscription.get("character_count"),
             character_limit=subscription.get("character_limit"))
        return True

    async def _get_json(self, operation: str, path: str, **context: Any) -> Any:
        started = time.perf_counter()
        try:
            response = await self._client.get(path)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            error(_LOG, "upstream_failed", operation=operation, error=_describe(e),
                  status=_status_of(e), **context)
            raise UpstreamError(f"{operation} failed: {_describe(e)}", _status_of(e), context) from e
        finally:
            metrics.observe_upstream(operation, time.perf_counter() - started)
        return data

    async def list_voices(self) -> List[Dict[str, Any]]:
        """
        Fetch the provider's voices.

        Raises:
            UpstreamError: On any failure or a body without a voices array.
        """
        data = await self._get_json("list_voices", "/voices")
        voices = data.get("voices") if isinstance(data, dict) else None
        if not isinstance(voices, list):
            raise UpstreamError("list_voices failed: response has no voices array")
        verbose(_LOG, "voices_listed", count=len(voices))
        return voices

    async def get_voice(self, voice_id: str) -> Dict[str, Any]:
        """Fetch one voice record. Raises UpstreamError (404 for unknown ids)."""
        data = await self._get_json("get_voice", f"/voices/{voice_id}", voice_id=voice_id)
        verbose(_LOG, "voice_fetched", voice_id=voice_id)
        return data

    async def list_models(self) -> List[Dict[str, Any]]:
        """Fetch the provider's model list, passed through verbatim."""
        data = await self._get_json("list_models", "/models")
        verbose(_LOG, "models_listed", count=len(data) if isinstance(data, list) else None)
        return data

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis
    # ─────────────────────────────────────────────────────────────────────────

    def build_payload(self, text: str, model_id: Optional[str] = None,
                      voice_settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Build the provider request body.

        Order: service defaults, then model_id if truthy, then a per-field
        merge of voice_settings. Keys set to None keep their default;
        keys the defaults do not know are passed through unchanged.
        """
        payload: Dict[str, Any] = {
            "text": text,
            "model_id": self._defaults.model_id,
            "voice_settings": self._defaults.voice_settings(),
        }
        if model_id:
            payload["model_id"] = model_id
        if voice_settings:
            payload["voice_settings"].update(
                {k: v for k, v in voice_settings.items() if v is not None}
            )
        return payload

    def _prepare(self, request: SynthesizeRequest) -> tuple[str, Dict[str, Any], Dict[str, Any]]:
        if not request.text:
            raise ValueError("text must not be empty")
        voice_id = request.voice_id or self._provider.default_voice_id
        payload = self.build_payload(request.text, request.model_id, request.voice_settings)
        context = {"voice_id": voice_id, "text_length": len(request.text)}
        debug(_LOG, "synthesis_payload", payload=payload, **context)
        return voice_id, payload, context

    @staticmethod
    def _log_error_body(content: bytes, **context: Any) -> None:
        """Log a failed synthesis body as JSON, or a hex preview when it is not JSON."""
        if not content:
            return
        try:
            error(_LOG, "provider_error_body", body=json.loads(content), **context)
        except ValueError:
            preview = content[:_ERROR_PREVIEW_BYTES].hex() + "..."
            error(_LOG, "provider_error_body_unparsed", preview=preview, **context)

    async def synthesize(self, request: SynthesizeRequest) -> bytes:
        """
        Buffered synthesis.

        Returns:
            The complete audio body.

        Raises:
            ValueError: If text is empty (no provider call).
            UpstreamError: If the provider call fails.
        """
        voice_id, payload, context = self._prepare(request)
        started = time.perf_counter()
        try:
            response = await self._client.post(f"/text-to-speech/{voice_id}", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            error(_LOG, "synthesis_failed", error=_describe(e), status=_status_of(e), **context)
            if isinstance(e, httpx.HTTPStatusError):
                self._log_error_body(e.response.content, **context)
            raise UpstreamError(f"synthesize failed: {_describe(e)}", _status_of(e), context) from e
        finally:
            metrics.observe_upstream("synthesize", time.perf_counter() - started)

        audio = response.content
        verbose(_LOG, "synthesis_done", audio_bytes=len(audio), **context)
        return audio

    async def synthesize_stream(self, request: SynthesizeRequest) -> AudioStream:
        """
        Streaming synthesis.

        Returns as soon as the provider answers 2xx; audio is then pulled
        through the returned AudioStream.

        Raises:
            ValueError: If text is empty (no provider call).
            UpstreamError: If the request cannot be sent or the provider
                answers non-2xx before any audio.
        """
        voice_id, payload, context = self._prepare(request)
        verbose(_LOG, "stream_started", **context)
        started = time.perf_counter()
        upstream_request = self._client.build_request(
            "POST", f"/text-to-speech/{voice_id}/stream", json=payload,
        )
        try:
            response = await self._client.send(upstream_request, stream=True)
        except httpx.HTTPError as e:
            error(_LOG, "stream_request_failed", error=_describe(e), **context)
            raise UpstreamError(f"synthesize_stream failed: {_describe(e)}", None, context) from e
        finally:
            metrics.observe_upstream("synthesize_stream", time.perf_counter() - started)

        if response.is_error:
            body = b""
            try:
                body = await response.aread()
            except httpx.HTTPError:
                pass  # body is only logged
            finally:
                await response.aclose()
            e = httpx.HTTPStatusError(
                f"provider returned {response.status_code}", request=upstream_request, response=response,
            )
            error(_LOG, "stream_request_failed", error=_describe(e), status=response.status_code, **context)
            self._log_error_body(body, **context)
            raise UpstreamError(f"synthesize_stream failed: {_describe(e)}", response.status_code, context)

        return AudioStream(response, self._chunk_size, context)
