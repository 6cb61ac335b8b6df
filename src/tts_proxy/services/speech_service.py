"""
SpeechService - Request Pipeline.

Every speech endpoint goes through this class:

    Request → Validate → Resolve voice → Apply template → Upstream → Response

Voice Resolution:
    1. voice_id from the request, mapped through the configured alias
       table (VOICE_ID_<NAME>) when it names an alias
    2. provider.default_voice_id otherwise

Error Conversion:
    - ApiError (including ValidationError) propagates unchanged.
    - UpstreamError with a provider client fault (400, 404, 422) keeps
      that status; any other UpstreamError becomes 500.
    - Anything else becomes 500.
    Messages are "<operation> failed: <cause>" and the log-only context
    (voice_id, text_length, upstream_status) travels on the ApiError.

Example:
    >>> service = SpeechService(config, client, prompts)
    >>> result = await service.synthesize(text="hello")
    >>> len(result.audio)
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from tts_proxy.core.config import ProxyConfig
from tts_proxy.core.errors import ApiError, FeatureDisabledError, NotFoundError
from tts_proxy.core.logging import fail, get_logger, info, success, verbose
from tts_proxy.core.metrics import metrics
from tts_proxy.services.prompts import DEFAULT_TEMPLATE_NAME, PromptSystem
from tts_proxy.services.upstream import AudioStream, SynthesizeRequest, UpstreamClient, UpstreamError
from tts_proxy.services.validators import (
    ValidationError,
    validate_template_name,
    validate_text,
    validate_voice_id,
)

_LOG = get_logger("tts-proxy.service")

# Provider statuses that describe a caller mistake and are passed through
PASSTHROUGH_STATUSES = frozenset({400, 404, 422})


@dataclass
class SpeechResult:
    """
    Buffered synthesis outcome.

    Attributes:
        audio: Complete audio body (audio/mpeg).
        voice_id: Voice actually used.
        text_length: Length of the caller's text (before templating).
        seconds: Wall time of the provider call.
    """
    audio: bytes
    voice_id: str
    text_length: int
    seconds: float


def to_api_error(operation: str, exc: Exception, context: Optional[Dict[str, Any]] = None) -> ApiError:
    """
    Convert any failure into the ApiError the boundary will render.

    Args:
        operation: Human-readable operation ("speech generation", ...).
        exc: The caught exception.
        context: Extra log-only fields.
    """
    if isinstance(exc, ApiError):
        return exc

    ctx = dict(context or {})
    if isinstance(exc, UpstreamError):
        ctx.update(exc.context)
        ctx["upstream_status"] = exc.status_code
        status = exc.status_code if exc.status_code in PASSTHROUGH_STATUSES else 500
        return ApiError(f"{operation} failed: {exc.message}", status, context=ctx)

    ctx["error_type"] = type(exc).__name__
    return ApiError(f"{operation} failed: {exc}", 500, context=ctx)


class SpeechService:
    """
    Orchestrates validation, templating and provider calls.

    Holds no per-request state; one instance lives on app.state.
    """

    def __init__(self, config: ProxyConfig, client: UpstreamClient, prompts: PromptSystem):
        self._config = config
        self._client = client
        self._prompts = prompts

    @property
    def config(self) -> ProxyConfig:
        return self._config

    @property
    def prompts(self) -> PromptSystem:
        return self._prompts

    @property
    def default_voice_id(self) -> str:
        return self._config.provider.default_voice_id

    def resolve_voice(self, voice_id: Optional[str]) -> str:
        """
        Resolve the voice id to send upstream.

        Raises:
            ValidationError: If the id is malformed, or no voice is given
                and no default is configured.
        """
        voice_id = validate_voice_id(voice_id)
        if voice_id:
            return self._config.provider.voices.get(voice_id.lower(), voice_id)
        if not self.default_voice_id:
            raise ValidationError("voice_id is required when no default voice is configured",
                                  "VOICE_ID_REQUIRED")
        return self.default_voice_id

    def _preview(self, text: str) -> str:
        limit = self._config.logging.text_preview_chars
        return text[:limit] if limit > 0 else ""

    def _prepare(self, text: Optional[str], voice_id: Optional[str], model_id: Optional[str],
                 voice_settings: Optional[Dict[str, Any]],
                 template_name: Optional[str]) -> SynthesizeRequest:
        text = validate_text(text)
        template_name = validate_template_name(template_name)
        resolved = self.resolve_voice(voice_id)
        processed = self._prompts.apply_template(text, template_name)
        return SynthesizeRequest(
            text=processed,
            voice_id=resolved,
            model_id=model_id,
            voice_settings=voice_settings,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis
    # ─────────────────────────────────────────────────────────────────────────

    async def synthesize(
        self,
        text: Optional[str],
        voice_id: Optional[str] = None,
        model_id: Optional[str] = None,
        voice_settings: Optional[Dict[str, Any]] = None,
        template_name: Optional[str] = None,
    ) -> SpeechResult:
        """
        Buffered synthesis.

        Returns:
            SpeechResult with the full audio body.

        Raises:
            ApiError: 400 for invalid input (no provider call), provider
                client faults with their status, 500 otherwise.
        """
        request = self._prepare(text, voice_id, model_id, voice_settings, template_name)
        context = {"voice_id": request.voice_id, "text_length": len(text)}
        info(_LOG, "tts_request", text_preview=self._preview(text), model_id=model_id,
             template_name=template_name, **context)

        started = time.perf_counter()
        try:
            audio = await self._client.synthesize(request)
        except Exception as e:
            fail(_LOG, "tts_failed", error=str(e), **context)
            metrics.record_request("tts", "error")
            raise to_api_error("speech generation", e, context) from e

        seconds = time.perf_counter() - started
        success(_LOG, "tts_completed", audio_bytes=len(audio), seconds=round(seconds, 3), **context)
        metrics.record_request("tts", "success")
        metrics.add_audio_bytes("buffered", len(audio))
        return SpeechResult(audio=audio, voice_id=request.voice_id, text_length=len(text), seconds=seconds)

    async def synthesize_stream(
        self,
        text: Optional[str],
        voice_id: Optional[str] = None,
        model_id: Optional[str] = None,
        voice_settings: Optional[Dict[str, Any]] = None,
        template_name: Optional[str] = None,
    ) -> AudioStream:
        """
        Open a streaming synthesis.

        Only failures before the first audio byte surface here; the
        returned AudioStream logs anything that happens after.
        """
        request = self._prepare(text, voice_id, model_id, voice_settings, template_name)
        context = {"voice_id": request.voice_id, "text_length": len(text)}
        verbose(_LOG, "tts_stream_request", text_preview=self._preview(text), model_id=model_id,
                template_name=template_name, **context)

        try:
            stream = await self._client.synthesize_stream(request)
        except Exception as e:
            fail(_LOG, "tts_stream_failed", error=str(e), **context)
            metrics.record_request("tts_stream", "error")
            raise to_api_error("streaming speech generation", e, context) from e

        info(_LOG, "tts_stream_started", **context)
        metrics.record_request("tts_stream", "success")
        return stream

    # ─────────────────────────────────────────────────────────────────────────
    # Metadata
    # ─────────────────────────────────────────────────────────────────────────

    def _mark_default(self, voice: Dict[str, Any]) -> Dict[str, Any]:
        return {**voice, "is_default": voice.get("voice_id") == self.default_voice_id}

    async def list_voices(self) -> List[Dict[str, Any]]:
        """Provider voices, each with is_default added."""
        try:
            voices = await self._client.list_voices()
        except Exception as e:
            metrics.record_request("voices", "error")
            raise to_api_error("fetching voices", e) from e
        metrics.record_request("voices", "success")
        return [self._mark_default(v) for v in voices]

    async def get_voice(self, voice_id: str) -> Dict[str, Any]:
        """One provider voice (aliases resolved) with is_default added."""
        resolved = self.resolve_voice(voice_id)
        try:
            voice = await self._client.get_voice(resolved)
        except Exception as e:
            metrics.record_request("voice", "error")
            raise to_api_error("fetching voice", e, {"voice_id": resolved}) from e
        metrics.record_request("voice", "success")
        return self._mark_default(voice)

    async def list_models(self) -> List[Dict[str, Any]]:
        try:
            models = await self._client.list_models()
        except Exception as e:
            metrics.record_request("models", "error")
            raise to_api_error("fetching models", e) from e
        metrics.record_request("models", "success")
        return models

    async def status(self) -> Dict[str, Any]:
        """Service status; api_connected reflects a live provider probe."""
        connected = await self._client.check_connection()
        metrics.record_request("status", "success")
        return {
            "status": "ok",
            "api_connected": connected,
            "config": {
                "default_voice_id": self.default_voice_id,
                "default_model_id": self._config.synthesis.model_id,
                "prompt_system_enabled": self._prompts.enabled,
                "environment": self._config.server.environment,
            },
        }

    # ─────────────────────────────────────────────────────────────────────────
    # Prompt templates
    # ─────────────────────────────────────────────────────────────────────────

    def _require_prompts(self) -> None:
        if not self._prompts.enabled:
            raise FeatureDisabledError()

    def add_template(self, name: Optional[str], template: Optional[str]) -> None:
        """
        Store a template.

        Raises:
            FeatureDisabledError: When the prompt system is off.
            ValidationError: Missing name/body or body without {{text}}.
        """
        self._require_prompts()
        if not name or not template:
            raise ValidationError("template name and body are required", "TEMPLATE_REQUIRED")
        validate_template_name(name)
        if not self._prompts.add_template(name, template):
            raise ValidationError("template must contain the {{text}} placeholder",
                                  "TEMPLATE_INVALID")
        info(_LOG, "template_saved", name=name)

    def remove_template(self, name: str) -> None:
        """
        Delete a template.

        Raises:
            FeatureDisabledError: When the prompt system is off.
            ValidationError: For "default".
            NotFoundError: For unknown names.
        """
        self._require_prompts()
        if name == DEFAULT_TEMPLATE_NAME:
            raise ValidationError("the default template cannot be removed", "TEMPLATE_PROTECTED")
        if not self._prompts.remove_template(name):
            raise NotFoundError(f"template not found: {name}")
        info(_LOG, "template_removed", name=name)

    def preview(self, text: Optional[str], template_name: Optional[str] = None) -> Dict[str, Any]:
        """Render a template without calling the provider."""
        self._require_prompts()
        text = validate_text(text)
        template_name = validate_template_name(template_name)
        return {
            "original_text": text,
            "processed_text": self._prompts.apply_template(text, template_name),
            "template_name": template_name or DEFAULT_TEMPLATE_NAME,
        }
