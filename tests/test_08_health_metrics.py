"""
Tests for /health, /metrics and the application lifespan.
"""
import pytest
from fastapi.testclient import TestClient

from conftest import make_app, make_settings
from tts_proxy import __version__
from tts_proxy.core.config import ConfigValidationError


class TestHealth:
    """Tests for GET /health."""

    def test_health_ok(self, provider):
        client = TestClient(make_app(provider))
        r = client.get("/health")

        assert r.status_code == 200
        assert r.json() == {"status": "ok", "version": __version__}

    def test_health_does_not_call_provider(self, provider):
        client = TestClient(make_app(provider))
        client.get("/health")
        assert provider.requests == []


class TestMetrics:
    """Tests for GET /metrics."""

    def test_metrics_exposed(self, provider):
        client = TestClient(make_app(provider))
        client.post("/api/tts", json={"text": "hello"})
        r = client.get("/metrics")

        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/plain")
        assert 'tts_proxy_requests_total{endpoint="tts",status="success"}' in r.text
        assert "tts_proxy_upstream_seconds" in r.text
        assert 'tts_proxy_audio_bytes_total{mode="buffered"}' in r.text
        assert "tts_proxy_active_streams" in r.text


class TestLifespan:
    """Startup connectivity check and required configuration."""

    def test_startup_checks_provider(self, provider):
        with TestClient(make_app(provider)) as client:
            assert client.get("/health").status_code == 200
        assert any(r.url.path.endswith("/user") for r in provider.requests)

    def test_startup_survives_unreachable_provider(self, provider):
        provider.failures["/user"] = (500, {"detail": "down"})
        with TestClient(make_app(provider)) as client:
            assert client.get("/health").status_code == 200

    def test_missing_credentials_fail_startup(self, provider):
        settings = make_settings(environment="development", provider={"api_key": "", "default_voice_id": ""})
        app = make_app(provider, settings)
        with pytest.raises(ConfigValidationError) as exc:
            with TestClient(app):
                pass
        assert "ELEVENLABS_API_KEY" in str(exc.value)

    def test_test_environment_skips_credentials(self, provider):
        settings = make_settings(provider={"api_key": ""})
        with TestClient(make_app(provider, settings)) as client:
            assert client.get("/health").status_code == 200
