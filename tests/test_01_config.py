"""
Tests for configuration loading, defaults and validation.

Tests cover:
- Defaults class values
- ProxyConfig.from_settings() - all sections
- ConfigValidationError on invalid values
- Environment overrides and VOICE_ID_<NAME> aliases
- Required credentials outside the test environment
- Settings.get() dotted paths
"""

import pytest

from tts_proxy.core.config import (
    ConfigValidationError,
    Defaults,
    ProxyConfig,
    Settings,
    apply_env_overrides,
    load_settings,
)


class TestDefaults:
    """Tests for Defaults class values."""

    def test_provider_defaults(self):
        assert Defaults.PROVIDER_BASE_URL == "https://api.elevenlabs.io/v1"
        assert Defaults.PROVIDER_TIMEOUT_S == 60.0

    def test_synthesis_defaults(self):
        assert Defaults.SYNTHESIS_MODEL_ID == "eleven_multilingual_v2"
        assert Defaults.SYNTHESIS_STABILITY == 0.5
        assert Defaults.SYNTHESIS_SIMILARITY_BOOST == 0.75
        assert Defaults.SYNTHESIS_STYLE == 0.0
        assert Defaults.SYNTHESIS_USE_SPEAKER_BOOST is False

    def test_server_defaults(self):
        assert Defaults.SERVER_PORT == 3000
        assert Defaults.SERVER_SHUTDOWN_GRACE_S == 10.0

    def test_default_template_has_placeholder(self):
        assert "{{text}}" in Defaults.PROMPTS_DEFAULT_TEMPLATE
        assert Defaults.PROMPTS_ENABLED is False


class TestProxyConfigFromSettings:
    """Tests for ProxyConfig.from_settings()."""

    def test_empty_settings_use_defaults(self):
        config = ProxyConfig.from_settings(Settings(raw={}))
        assert config.server.port == Defaults.SERVER_PORT
        assert config.provider.base_url == Defaults.PROVIDER_BASE_URL
        assert config.synthesis.model_id == Defaults.SYNTHESIS_MODEL_ID
        assert config.streaming.chunk_size == 0
        assert config.logging.level == 2
        assert config.prompts.enabled is False

    def test_sections_are_read(self):
        settings = Settings(raw={
            "server": {"port": 8080, "environment": "production"},
            "provider": {"base_url": "https://example.test/v1/", "voices": {"Rachel": "r-1"}},
            "synthesis": {"stability": 0.9, "use_speaker_boost": "true"},
            "streaming": {"chunk_size": 1024},
            "prompts": {"enabled": "true"},
        })
        config = ProxyConfig.from_settings(settings)
        assert config.server.port == 8080
        assert config.server.is_production
        assert config.provider.base_url == "https://example.test/v1"
        assert config.provider.voices == {"rachel": "r-1"}
        assert config.synthesis.stability == 0.9
        assert config.synthesis.use_speaker_boost is True
        assert config.streaming.chunk_size == 1024
        assert config.prompts.enabled is True

    def test_string_log_level(self):
        config = ProxyConfig.from_settings(Settings(raw={"logging": {"level": "DEBUG"}}))
        assert config.logging.level == 4

    def test_voice_settings_wire_format(self):
        config = ProxyConfig.from_settings(Settings(raw={}))
        assert config.synthesis.voice_settings() == {
            "stability": 0.5,
            "similarity_boost": 0.75,
            "style": 0.0,
            "use_speaker_boost": False,
        }


class TestValidation:
    """Invalid values raise ConfigValidationError."""

    @pytest.mark.parametrize("raw", [
        {"server": {"port": 0}},
        {"server": {"port": 70000}},
        {"provider": {"timeout_s": 0}},
        {"streaming": {"chunk_size": -1}},
        {"logging": {"level": 9}},
        {"provider": {"voices": ["not", "a", "mapping"]}},
        {"prompts": {"default_template": "Read this"}},
    ])
    def test_invalid_values_rejected(self, raw):
        with pytest.raises(ConfigValidationError):
            ProxyConfig.from_settings(Settings(raw=raw))

    def test_default_template_without_placeholder(self):
        with pytest.raises(ConfigValidationError) as exc:
            ProxyConfig.from_settings(Settings(raw={"prompts": {"enabled": True, "default_template": "Read this"}}))
        assert "{{text}}" in str(exc.value)

    def test_missing_credentials_named(self):
        config = ProxyConfig.from_settings(Settings(raw={}))
        with pytest.raises(ConfigValidationError) as exc:
            config.validate_required()
        assert "ELEVENLABS_API_KEY" in str(exc.value)
        assert "DEFAULT_VOICE_ID" in str(exc.value)

    def test_credentials_present(self):
        config = ProxyConfig.from_settings(Settings(raw={
            "provider": {"api_key": "k", "default_voice_id": "v"},
        }))
        config.validate_required()


class TestEnvOverrides:
    """Environment variables override the settings file."""

    def test_env_values_applied(self):
        raw = apply_env_overrides({"synthesis": {"stability": 0.1}}, {
            "ELEVENLABS_API_KEY": "secret",
            "DEFAULT_VOICE_ID": "v-1",
            "DEFAULT_STABILITY": "0.8",
            "ENABLE_PROMPT_SYSTEM": "true",
            "PORT": "4000",
        })
        config = ProxyConfig.from_settings(Settings(raw=raw))
        assert config.provider.api_key == "secret"
        assert config.provider.default_voice_id == "v-1"
        assert config.synthesis.stability == 0.8
        assert config.prompts.enabled is True
        assert config.server.port == 4000

    def test_voice_aliases_from_env(self):
        raw = apply_env_overrides({}, {"VOICE_ID_RACHEL": "21m00", "VOICE_ID_ADAM": "pNInz"})
        config = ProxyConfig.from_settings(Settings(raw=raw))
        assert config.provider.voices == {"rachel": "21m00", "adam": "pNInz"}

    @pytest.mark.parametrize("raw", [
        {"provider": None},
        {"provider": {"voices": None}},
    ])
    def test_voice_aliases_with_empty_yaml_sections(self, raw):
        raw = apply_env_overrides(raw, {"VOICE_ID_RACHEL": "abc"})
        config = ProxyConfig.from_settings(Settings(raw=raw))
        assert config.provider.voices == {"rachel": "abc"}

    def test_empty_env_values_ignored(self):
        raw = apply_env_overrides({"provider": {"api_key": "file-key"}}, {"ELEVENLABS_API_KEY": ""})
        assert raw["provider"]["api_key"] == "file-key"


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_yaml_file_loaded(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DEFAULT_VOICE_ID", raising=False)
        path = tmp_path / "settings.yaml"
        path.write_text("provider:\n  default_voice_id: from-file\n", encoding="utf-8")
        settings = load_settings(str(path))
        assert settings.default_voice_id == "from-file"

    def test_env_wins_over_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEFAULT_VOICE_ID", "from-env")
        path = tmp_path / "settings.yaml"
        path.write_text("provider:\n  default_voice_id: from-file\n", encoding="utf-8")
        assert load_settings(str(path)).default_voice_id == "from-env"

    def test_missing_file_falls_back(self, tmp_path):
        settings = load_settings(str(tmp_path / "absent.yaml"))
        assert isinstance(settings.raw, dict)

    def test_missing_file_required(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "absent.yaml"), required=True)


class TestSettings:
    """Tests for Settings helpers."""

    def test_dotted_get(self):
        settings = Settings(raw={"provider": {"voices": {"rachel": "r-1"}}})
        assert settings.get("provider.voices.rachel") == "r-1"
        assert settings.get("provider.missing", "fallback") == "fallback"
        assert settings.get("provider.voices.rachel.deeper") is None

    def test_environment_property(self):
        assert Settings(raw={}).environment == "development"
        assert Settings(raw={"server": {"environment": "test"}}).environment == "test"
