"""
Configuration Management for tts-proxy.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Frozen dataclass configuration sections
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (ELEVENLABS_API_KEY, DEFAULT_VOICE_ID, etc.)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    server:
      host: 0.0.0.0
      port: 3000
      environment: production

    provider:
      base_url: https://api.elevenlabs.io/v1
      default_voice_id: 21m00Tcm4TlvDq8ikWAM
      voices:
        rachel: 21m00Tcm4TlvDq8ikWAM

    synthesis:
      model_id: eleven_multilingual_v2
      stability: 0.5

    prompts:
      enabled: false

Environment Variables:
    HOST, PORT, APP_ENV                      - server section
    ELEVENLABS_API_KEY, ELEVENLABS_BASE_URL  - provider credentials/endpoint
    DEFAULT_VOICE_ID, VOICE_ID_<NAME>        - default voice and aliases
    DEFAULT_MODEL_ID, DEFAULT_STABILITY,
    DEFAULT_SIMILARITY_BOOST, DEFAULT_STYLE,
    DEFAULT_USE_SPEAKER_BOOST                - synthesis defaults
    STREAM_CHUNK_SIZE                        - streaming re-chunk hint
    ENABLE_PROMPT_SYSTEM,
    DEFAULT_PROMPT_TEMPLATE                  - template feature
    TTS_PROXY_SETTINGS                       - settings file path
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import os
import yaml

from tts_proxy.core.logging.levels import coerce_level


PLACEHOLDER = "{{text}}"


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is thrown when a configuration value is outside
    acceptable bounds, of the wrong type, or a required value is missing.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Server: Bind address and environment name
        - Provider: Upstream endpoint and request timeout
        - Synthesis: Model and voice-setting defaults
        - Streaming: Re-chunk hint for streamed audio
        - Logging: Log level
        - Prompts: Template feature flag and default template
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Server
    # ─────────────────────────────────────────────────────────────────────────
    SERVER_HOST = "localhost"
    SERVER_PORT = 3000
    SERVER_ENVIRONMENT = "development"
    SERVER_SHUTDOWN_GRACE_S = 10.0      # Drain window before forced exit

    # ─────────────────────────────────────────────────────────────────────────
    # Provider
    # ─────────────────────────────────────────────────────────────────────────
    PROVIDER_BASE_URL = "https://api.elevenlabs.io/v1"
    PROVIDER_TIMEOUT_S = 60.0           # Per-request timeout (connect/read)

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis
    # ─────────────────────────────────────────────────────────────────────────
    SYNTHESIS_MODEL_ID = "eleven_multilingual_v2"
    SYNTHESIS_STABILITY = 0.5
    SYNTHESIS_SIMILARITY_BOOST = 0.75
    SYNTHESIS_STYLE = 0.0
    SYNTHESIS_USE_SPEAKER_BOOST = False

    # ─────────────────────────────────────────────────────────────────────────
    # Streaming
    # ─────────────────────────────────────────────────────────────────────────
    STREAMING_CHUNK_SIZE = 0            # 0 = forward upstream chunks as-is

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG
    LOGGING_TEXT_PREVIEW_CHARS = 80     # Chars of input text shown in request logs

    # ─────────────────────────────────────────────────────────────────────────
    # Prompts
    # ─────────────────────────────────────────────────────────────────────────
    PROMPTS_ENABLED = False
    PROMPTS_DEFAULT_TEMPLATE = "Please read the following content in a natural tone: " + PLACEHOLDER


def _as_bool(value: Any) -> bool:
    """Interpret YAML/env values ("true", "1", "yes", True) as booleans."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("true", "1", "yes", "on")


@dataclass(frozen=True)
class ServerConfig:
    """HTTP bind address and runtime environment."""
    host: str = Defaults.SERVER_HOST
    port: int = Defaults.SERVER_PORT
    environment: str = Defaults.SERVER_ENVIRONMENT
    shutdown_grace_s: float = Defaults.SERVER_SHUTDOWN_GRACE_S

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@dataclass(frozen=True)
class ProviderConfig:
    """
    Upstream provider endpoint and credentials.

    Attributes:
        voices: Alias name -> voice id, from VOICE_ID_<NAME> variables
            or the provider.voices mapping.
    """
    base_url: str = Defaults.PROVIDER_BASE_URL
    api_key: str = ""
    default_voice_id: str = ""
    voices: Mapping[str, str] = field(default_factory=dict)
    timeout_s: float = Defaults.PROVIDER_TIMEOUT_S


@dataclass(frozen=True)
class SynthesisDefaults:
    """
    Service-wide synthesis defaults.

    Numeric settings are nominally in [0, 1] but are not range-checked;
    the provider is the sole authority on rejecting them.
    """
    model_id: str = Defaults.SYNTHESIS_MODEL_ID
    stability: float = Defaults.SYNTHESIS_STABILITY
    similarity_boost: float = Defaults.SYNTHESIS_SIMILARITY_BOOST
    style: float = Defaults.SYNTHESIS_STYLE
    use_speaker_boost: bool = Defaults.SYNTHESIS_USE_SPEAKER_BOOST

    def voice_settings(self) -> Dict[str, Any]:
        """Voice settings in the provider's wire format."""
        return {
            "stability": self.stability,
            "similarity_boost": self.similarity_boost,
            "style": self.style,
            "use_speaker_boost": self.use_speaker_boost,
        }


@dataclass(frozen=True)
class StreamingConfig:
    """Streaming synthesis options."""
    chunk_size: int = Defaults.STREAMING_CHUNK_SIZE


@dataclass(frozen=True)
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, errors only
        2 = NORMAL: Request lifecycle (default)
        3 = VERBOSE: Upstream calls, stream progress
        4 = DEBUG: Payloads and internal state

    log_dir, jsonl_file and rotation are read by the logging package
    itself (see core/logging/context.py).
    """
    level: int = Defaults.LOGGING_LEVEL
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS


@dataclass(frozen=True)
class PromptsConfig:
    """Prompt template feature flag and the body of the "default" template."""
    enabled: bool = Defaults.PROMPTS_ENABLED
    default_template: str = Defaults.PROMPTS_DEFAULT_TEMPLATE


@dataclass(frozen=True)
class ProxyConfig:
    """
    Validated configuration for the whole service.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ProxyConfig.from_settings(settings)
        print(config.synthesis.model_id)
    """
    server: ServerConfig = field(default_factory=ServerConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    synthesis: SynthesisDefaults = field(default_factory=SynthesisDefaults)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    prompts: PromptsConfig = field(default_factory=PromptsConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ProxyConfig":
        """
        Create ProxyConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML/environment.

        Returns:
            Validated ProxyConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Server
        # ─────────────────────────────────────────────────────────────────────
        server_raw = raw.get("server", {}) or {}
        server = ServerConfig(
            host=str(server_raw.get("host", Defaults.SERVER_HOST)),
            port=int(server_raw.get("port", Defaults.SERVER_PORT)),
            environment=str(server_raw.get("environment", Defaults.SERVER_ENVIRONMENT)),
            shutdown_grace_s=float(server_raw.get("shutdown_grace_s", Defaults.SERVER_SHUTDOWN_GRACE_S)),
        )
        cls._validate_range("server.port", server.port, 1, 65535)
        cls._validate_non_negative("server.shutdown_grace_s", server.shutdown_grace_s)

        # ─────────────────────────────────────────────────────────────────────
        # Provider
        # ─────────────────────────────────────────────────────────────────────
        provider_raw = raw.get("provider", {}) or {}
        voices_raw = provider_raw.get("voices", {}) or {}
        if not isinstance(voices_raw, dict):
            raise ConfigValidationError(f"provider.voices must be a mapping, got {type(voices_raw).__name__}")
        provider = ProviderConfig(
            base_url=str(provider_raw.get("base_url", Defaults.PROVIDER_BASE_URL)).rstrip("/"),
            api_key=str(provider_raw.get("api_key") or ""),
            default_voice_id=str(provider_raw.get("default_voice_id") or ""),
            voices={str(k).lower(): str(v) for k, v in voices_raw.items()},
            timeout_s=float(provider_raw.get("timeout_s", Defaults.PROVIDER_TIMEOUT_S)),
        )
        cls._validate_positive("provider.timeout_s", provider.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Synthesis defaults
        # ─────────────────────────────────────────────────────────────────────
        synthesis_raw = raw.get("synthesis", {}) or {}
        synthesis = SynthesisDefaults(
            model_id=str(synthesis_raw.get("model_id", Defaults.SYNTHESIS_MODEL_ID)),
            stability=float(synthesis_raw.get("stability", Defaults.SYNTHESIS_STABILITY)),
            similarity_boost=float(synthesis_raw.get("similarity_boost", Defaults.SYNTHESIS_SIMILARITY_BOOST)),
            style=float(synthesis_raw.get("style", Defaults.SYNTHESIS_STYLE)),
            use_speaker_boost=_as_bool(synthesis_raw.get("use_speaker_boost", Defaults.SYNTHESIS_USE_SPEAKER_BOOST)),
        )

        # ─────────────────────────────────────────────────────────────────────
        # Streaming
        # ─────────────────────────────────────────────────────────────────────
        streaming_raw = raw.get("streaming", {}) or {}
        streaming = StreamingConfig(
            chunk_size=int(streaming_raw.get("chunk_size", Defaults.STREAMING_CHUNK_SIZE)),
        )
        cls._validate_non_negative("streaming.chunk_size", streaming.chunk_size)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)
        if isinstance(log_level_raw, str):
            log_level = int(coerce_level(log_level_raw))
        else:
            log_level = int(log_level_raw)
        logging_cfg = LoggingConfig(
            level=log_level,
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
        )
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)

        # ─────────────────────────────────────────────────────────────────────
        # Prompts
        # ─────────────────────────────────────────────────────────────────────
        prompts_raw = raw.get("prompts", {}) or {}
        prompts = PromptsConfig(
            enabled=_as_bool(prompts_raw.get("enabled", Defaults.PROMPTS_ENABLED)),
            default_template=str(prompts_raw.get("default_template") or Defaults.PROMPTS_DEFAULT_TEMPLATE),
        )
        if PLACEHOLDER not in prompts.default_template:
            raise ConfigValidationError(
                f"prompts.default_template must contain the {PLACEHOLDER} placeholder"
            )

        return cls(
            server=server,
            provider=provider,
            synthesis=synthesis,
            streaming=streaming,
            logging=logging_cfg,
            prompts=prompts,
        )

    def validate_required(self) -> None:
        """
        Check that credentials needed to reach the provider are present.

        Skipped by callers when running in the "test" environment.

        Raises:
            ConfigValidationError: Naming every missing environment variable.
        """
        missing = []
        if not self.provider.api_key:
            missing.append("ELEVENLABS_API_KEY")
        if not self.provider.default_voice_id:
            missing.append("DEFAULT_VOICE_ID")
        if missing:
            raise ConfigValidationError(f"missing required configuration: {', '.join(missing)}")

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_proxy_config() to get a validated ProxyConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    def get(self, path: str, default: Any = None) -> Any:
        """
        Look up a dotted path such as "provider.default_voice_id".

        Returns default when any segment is missing.
        """
        node: Any = self.raw
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    @property
    def environment(self) -> str:
        """Get the runtime environment name."""
        return str(self.get("server.environment", Defaults.SERVER_ENVIRONMENT))

    @property
    def default_voice_id(self) -> str:
        """Get the configured default voice id."""
        return str(self.get("provider.default_voice_id") or "")

    def get_proxy_config(self) -> ProxyConfig:
        """
        Get validated ProxyConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ProxyConfig.from_settings(self)


# env var -> dotted settings path
_ENV_OVERRIDES = {
    "HOST": "server.host",
    "PORT": "server.port",
    "APP_ENV": "server.environment",
    "ELEVENLABS_API_KEY": "provider.api_key",
    "ELEVENLABS_BASE_URL": "provider.base_url",
    "DEFAULT_VOICE_ID": "provider.default_voice_id",
    "DEFAULT_MODEL_ID": "synthesis.model_id",
    "DEFAULT_STABILITY": "synthesis.stability",
    "DEFAULT_SIMILARITY_BOOST": "synthesis.similarity_boost",
    "DEFAULT_STYLE": "synthesis.style",
    "DEFAULT_USE_SPEAKER_BOOST": "synthesis.use_speaker_boost",
    "STREAM_CHUNK_SIZE": "streaming.chunk_size",
    "ENABLE_PROMPT_SYSTEM": "prompts.enabled",
    "DEFAULT_PROMPT_TEMPLATE": "prompts.default_template",
}

_VOICE_ALIAS_PREFIX = "VOICE_ID_"


def apply_env_overrides(raw: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Overlay environment variables onto a raw settings dictionary.

    VOICE_ID_<NAME> variables become lowercase aliases under provider.voices.

    Args:
        raw: Settings dictionary (modified in place).
        environ: Environment mapping (defaults to os.environ).

    Returns:
        The same dictionary, for chaining.
    """
    env = os.environ if environ is None else environ

    for var, path in _ENV_OVERRIDES.items():
        value = env.get(var)
        if value is None or value == "":
            continue
        section, key = path.split(".", 1)
        node = raw.get(section)
        if not isinstance(node, dict):
            node = raw[section] = {}
        node[key] = value

    for var, value in env.items():
        if var.startswith(_VOICE_ALIAS_PREFIX) and value:
            alias = var[len(_VOICE_ALIAS_PREFIX):].lower()
            # a bare "provider:" or "voices:" key in YAML loads as None
            provider = raw["provider"] = raw.get("provider") or {}
            voices = provider["voices"] = provider.get("voices") or {}
            voices[alias] = value

    return raw


def load_settings(path: Optional[str] = None, required: bool = False) -> Settings:
    """
    Load settings from a YAML configuration file plus the environment.

    Args:
        path: Path to the YAML file (defaults to $TTS_PROXY_SETTINGS or
            config/settings.yaml).
        required: Raise if the file does not exist instead of falling
            back to environment and defaults only.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If required and the settings file doesn't exist.
    """
    p = Path(path or os.getenv("TTS_PROXY_SETTINGS", "config/settings.yaml"))
    raw: Dict[str, Any] = {}
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    elif required:
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    return Settings(raw=apply_env_overrides(raw))
