"""
Command-Line Interface for tts-proxy.

Runs the same pipeline as the HTTP API (validation, voice aliases,
prompt templates, voice-setting merge) without starting a server, and
can also start the server.

Usage Examples:
    # Single text synthesis
    tts-proxy --text "Hello there" --out hello.mp3

    # Positional text, streamed to disk as it arrives
    tts-proxy "Hello there" --stream --out hello.mp3

    # Batch processing from file (1 line = 1 item)
    tts-proxy --file inputs.txt --out output_dir/

    # Show the provider payload without calling the provider
    tts-proxy --text "Test" --voice rachel --dry-run --json

    # Provider metadata
    tts-proxy --voices --json
    tts-proxy --models
    tts-proxy --check

    # Run the HTTP server
    tts-proxy --serve --host 0.0.0.0 --port 3000

Environment Variables:
    ELEVENLABS_API_KEY, DEFAULT_VOICE_ID and the other overrides accepted
    by core/config.py; TTS_PROXY_SETTINGS selects the settings file.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, List, Optional

import httpx

from tts_proxy.core.config import ConfigValidationError, ProxyConfig, Settings, load_settings
from tts_proxy.core.errors import ApiError
from tts_proxy.core.logging import configure_logging, get_logger, info, set_request_id
from tts_proxy.api.middleware import new_request_id
from tts_proxy.services.prompts import PromptSystem
from tts_proxy.services.speech_service import SpeechService
from tts_proxy.services.upstream import UpstreamClient


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="tts-proxy CLI")

    # Input
    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--file", help="Batch input file (1 line = 1 item)")

    # Output
    parser.add_argument("--out", help="Output path (file, or dir in batch mode)")

    # Synthesis overrides
    parser.add_argument("--voice", help="Voice id or configured alias")
    parser.add_argument("--model", help="Model id override")
    parser.add_argument("--template", help="Prompt template name")
    parser.add_argument("--stream", action="store_true", help="Use the streaming endpoint")

    # Modes
    parser.add_argument("--dry-run", action="store_true",
                        help="Print the provider payload without calling it")
    parser.add_argument("--json", action="store_true", help="Print JSON output")
    parser.add_argument("--voices", action="store_true", help="List provider voices")
    parser.add_argument("--models", action="store_true", help="List provider models")
    parser.add_argument("--check", action="store_true", help="Check provider connectivity")

    # Server
    parser.add_argument("--serve", action="store_true", help="Run the HTTP server")
    parser.add_argument("--host", help="Bind host (default from settings)")
    parser.add_argument("--port", type=int, help="Bind port (default from settings)")

    parser.add_argument("--settings", help="Settings file (default config/settings.yaml)")

    return parser.parse_args(argv)


def _load_texts(args: argparse.Namespace) -> List[str]:
    """
    Collect input texts from --file, --text or the positional argument.

    Raises:
        SystemExit: If no input is given or --file is combined with text.
    """
    text = args.text or args.text_pos

    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        lines = Path(args.file).read_text(encoding="utf-8").splitlines()
        items = [line.strip() for line in lines if line.strip()]
        if not items:
            raise SystemExit("Input file is empty.")
        return items

    if not text:
        raise SystemExit("Provide --text or a positional text.")
    return [text]


def _resolve_output_paths(args: argparse.Namespace, count: int) -> List[Path]:
    if args.file:
        out_dir = Path(args.out or "out")
        out_dir.mkdir(parents=True, exist_ok=True)
        return [out_dir / f"item_{i + 1:03d}.mp3" for i in range(count)]

    out_path = Path(args.out or "out.mp3")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    return [out_path]


def _make_client(config: ProxyConfig) -> UpstreamClient:
    return UpstreamClient.from_config(config)


def _emit(payload: Any, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def _serve(settings: Settings, config: ProxyConfig, args: argparse.Namespace) -> int:
    import uvicorn

    from tts_proxy.main import create_app

    uvicorn.run(
        create_app(settings),
        host=args.host or config.server.host,
        port=args.port or config.server.port,
        timeout_graceful_shutdown=int(config.server.shutdown_grace_s),
        log_config=None,
    )
    return 0


async def _synthesize_all(service: SpeechService, args: argparse.Namespace,
                          texts: List[str], out_paths: List[Path]) -> List[dict]:
    log = get_logger("tts-proxy.cli")
    results = []
    for text, out_path in zip(texts, out_paths):
        info(log, "synth_start", chars=len(text), out=str(out_path), stream=args.stream)
        if args.stream:
            stream = await service.synthesize_stream(
                text, voice_id=args.voice, model_id=args.model, template_name=args.template,
            )
            written = 0
            with out_path.open("wb") as f:
                async for chunk in stream:
                    f.write(chunk)
                    written += len(chunk)
        else:
            result = await service.synthesize(
                text, voice_id=args.voice, model_id=args.model, template_name=args.template,
            )
            out_path.write_bytes(result.audio)
            written = len(result.audio)
        results.append({"out": str(out_path), "bytes": written})
    return results


async def _run(service: SpeechService, client: UpstreamClient, args: argparse.Namespace) -> int:
    try:
        if args.check:
            connected = await client.check_connection()
            _emit({"ok": connected, "api_connected": connected}, args.json)
            return 0 if connected else 1

        if args.voices:
            _emit({"ok": True, "voices": await service.list_voices()}, args.json)
            return 0

        if args.models:
            _emit({"ok": True, "models": await service.list_models()}, args.json)
            return 0

        texts = _load_texts(args)
        out_paths = _resolve_output_paths(args, len(texts))
        results = await _synthesize_all(service, args, texts, out_paths)
        _emit({"ok": True, "dry_run": False, "items": results}, args.json)
        print("CLI_OK")
        return 0
    except ApiError as e:
        _emit({"ok": False, "code": e.status_code, "message": e.message}, args.json)
        return 1
    except httpx.HTTPError as e:
        _emit({"ok": False, "code": None, "message": f"stream interrupted: {e}"}, args.json)
        return 1
    finally:
        await client.aclose()


def _dry_run(service: SpeechService, client: UpstreamClient, args: argparse.Namespace) -> int:
    texts = _load_texts(args)
    items = []
    for text in texts:
        voice_id = service.resolve_voice(args.voice)
        processed = service.prompts.apply_template(text, args.template)
        items.append({
            "voice_id": voice_id,
            "text_len": len(text),
            "payload": client.build_payload(processed, args.model),
        })
    _emit({"ok": True, "dry_run": True, "items": items}, args.json)
    print("DRY_RUN_OK")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        Exit code: 0 success, 1 provider/request failure, 2 configuration error.
    """
    args = _parse_args(argv)

    configure_logging()
    set_request_id(new_request_id())

    try:
        settings = load_settings(args.settings, required=bool(args.settings))
        config = settings.get_proxy_config()
    except (ConfigValidationError, FileNotFoundError, ValueError) as e:
        print(f"configuration error: {e}")
        return 2

    if args.serve:
        return _serve(settings, config, args)

    if not args.dry_run and config.server.environment != "test":
        try:
            config.validate_required()
        except ConfigValidationError as e:
            print(f"configuration error: {e}")
            return 2

    client = _make_client(config)
    service = SpeechService(config, client, PromptSystem.from_config(config.prompts))

    if args.dry_run:
        try:
            return _dry_run(service, client, args)
        except ApiError as e:
            _emit({"ok": False, "code": e.status_code, "message": e.message}, args.json)
            return 1

    return asyncio.run(_run(service, client, args))


if __name__ == "__main__":
    raise SystemExit(main())
