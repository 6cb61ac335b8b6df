"""
FastAPI Application Entry Point.

create_app() wires configuration, the upstream client, the prompt
template engine and the speech pipeline onto app.state, installs the
request middleware and the error boundary, and registers the routers.

Lifespan:
    startup  - validate required configuration (skipped when
               server.environment is "test"), probe the provider and
               warn if it is unreachable
    shutdown - close the upstream HTTP client

Usage:
    # Run with uvicorn
    uvicorn tts_proxy.main:app --host 0.0.0.0 --port 3000

    # Or through the CLI
    tts-proxy --serve
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from tts_proxy import __version__
from tts_proxy.api.errors import install_error_handlers
from tts_proxy.api.middleware import RequestContextMiddleware
from tts_proxy.api.routes import ops_router, router
from tts_proxy.core.config import ProxyConfig, Settings, load_settings
from tts_proxy.core.logging import (
    configure_logging,
    get_level_name,
    get_log_config,
    get_logger,
    info,
    success,
    warn,
)
from tts_proxy.services.prompts import PromptSystem
from tts_proxy.services.speech_service import SpeechService
from tts_proxy.services.upstream import UpstreamClient

_LOG = get_logger("tts-proxy.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    config: ProxyConfig = app.state.config
    if config.server.environment != "test":
        config.validate_required()

    connected = await app.state.client.check_connection()
    if not connected:
        warn(_LOG, "upstream_unreachable", base_url=config.provider.base_url)
    success(_LOG, "startup", environment=config.server.environment, api_connected=connected,
            host=config.server.host, port=config.server.port,
            log_level=get_level_name(), log_dir=get_log_config().get("log_dir"))
    try:
        yield
    finally:
        await app.state.client.aclose()
        info(_LOG, "shutdown")


def create_app(
    settings: Optional[Settings] = None,
    client: Optional[UpstreamClient] = None,
    prompts: Optional[PromptSystem] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Raw settings (default: load_settings()).
        client: Upstream client (default: built from settings).
        prompts: Prompt template engine (default: built from settings).

    Returns:
        Configured application.

    Raises:
        ConfigValidationError: If settings contain invalid values.
    """
    configure_logging()

    settings = settings or load_settings()
    config = settings.get_proxy_config()
    client = client or UpstreamClient.from_config(config)
    prompts = prompts or PromptSystem.from_config(config.prompts)

    app = FastAPI(title="tts-proxy", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.config = config
    app.state.client = client
    app.state.prompts = prompts
    app.state.speech = SpeechService(config, client, prompts)

    app.add_middleware(RequestContextMiddleware)
    install_error_handlers(app)

    app.include_router(router)        # /api/...
    app.include_router(ops_router)    # /health, /metrics

    return app


# Global application instance for ASGI servers
app = create_app()
