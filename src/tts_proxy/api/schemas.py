"""
API Request/Response Schemas.

Pydantic models for the /api endpoints. Request bodies only check types;
emptiness of text is checked by the service layer so that a missing and an
empty text produce the same 400 "text is required".

Example Request (POST /api/tts):
    {
        "text": "Hello there",
        "voice_id": "21m00Tcm4TlvDq8ikWAM",
        "model_id": "eleven_multilingual_v2",
        "voice_settings": {"stability": 0.9}
    }
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class VoiceSettings(BaseModel):
    """
    Partial voice settings, merged field by field over the service defaults.

    Values are nominally in [0, 1] but not range-checked here; unknown keys
    are kept and forwarded to the provider.
    """
    model_config = ConfigDict(extra="allow")

    stability: Optional[float] = None
    similarity_boost: Optional[float] = None
    style: Optional[float] = None
    use_speaker_boost: Optional[bool] = None

    def as_overrides(self) -> Dict[str, Any]:
        """Only the fields the caller actually set."""
        return self.model_dump(exclude_none=True)


class TTSRequest(BaseModel):
    """
    Body of POST /api/tts and POST /api/tts/stream.

    Attributes:
        text: Text to synthesize (required, non-empty).
        voice_id: Provider voice id or configured alias (default voice if omitted).
        model_id: Model override (service default if omitted).
        voice_settings: Partial voice settings.
        template_name: Prompt template to apply (default template if omitted).
    """
    text: Optional[str] = Field(default=None, description="Text to synthesize")
    voice_id: Optional[str] = Field(default=None, description="Voice id or alias")
    model_id: Optional[str] = Field(default=None, description="Model id override")
    voice_settings: Optional[VoiceSettings] = None
    template_name: Optional[str] = Field(default=None, description="Prompt template name")


class PromptTemplateRequest(BaseModel):
    """Body of POST /api/prompts/templates."""
    name: Optional[str] = None
    template: Optional[str] = Field(default=None, description="Body containing {{text}}")


class PromptPreviewRequest(BaseModel):
    """Body of POST /api/prompts/preview."""
    text: Optional[str] = None
    template_name: Optional[str] = None


class TemplateMutationResponse(BaseModel):
    success: bool
    message: str
    name: str


class PromptPreviewResponse(BaseModel):
    original_text: str
    processed_text: str
    template_name: str


class StatusConfig(BaseModel):
    default_voice_id: str
    default_model_id: str
    prompt_system_enabled: bool
    environment: str


class StatusResponse(BaseModel):
    """
    Body of GET /api/status.

    Example Response:
        {
            "status": "ok",
            "api_connected": true,
            "config": {
                "default_voice_id": "21m00Tcm4TlvDq8ikWAM",
                "default_model_id": "eleven_multilingual_v2",
                "prompt_system_enabled": false,
                "environment": "production"
            }
        }
    """
    status: str
    api_connected: bool
    config: StatusConfig
