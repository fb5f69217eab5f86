"""Command line interface for the voicenote application."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Dict, NoReturn, Optional

import typer

from . import __version__
from . import config as config_mod
from .config import ConfigError
from .errors import VoicenoteError
from .models import Config, SttSettings
from .recorder import CaptureController
from .storage import SettingsStore, StorageError, load_stt_settings, save_stt_settings
from .transcriber import TranscriptionClient

app = typer.Typer(add_completion=False, help="Record the microphone and transcribe it with Mistral.")


def _fail(exc: Exception) -> NoReturn:
    typer.secho(str(exc), fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def _load() -> Config:
    try:
        return config_mod.load_config()
    except ConfigError as exc:
        _fail(exc)


def _open_store(cfg: Config) -> SettingsStore:
    try:
        return SettingsStore(config_mod.resolve_settings_db(cfg))
    except StorageError as exc:
        _fail(exc)


def _load_settings(cfg: Config) -> tuple[SettingsStore, SttSettings]:
    store = _open_store(cfg)
    try:
        return store, load_stt_settings(store)
    except StorageError as exc:
        _fail(exc)


def _resolve_credentials(cfg: Config, api_key: Optional[str], language: Optional[str]) -> tuple[str, Optional[str]]:
    _, stored = _load_settings(cfg)
    key = api_key or stored.api_key
    if not key:
        typer.secho(
            "No API key configured. Run `voicenote settings --api-key KEY` or pass --api-key.",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)
    return key, language if language is not None else stored.language


def _transcribe(cfg: Config, audio: Path, api_key: str, language: Optional[str]) -> str:
    client = TranscriptionClient.from_config(cfg)
    try:
        return asyncio.run(client.transcribe(audio, api_key, language))
    except VoicenoteError as exc:
        _fail(exc)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Log pipeline activity to stderr."),
    version: bool = typer.Option(False, "--version", "-v", help="Show version and exit"),
) -> None:
    if version:
        typer.echo(f"voicenote v{__version__}")
        raise typer.Exit()

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command()
def record(
    language: Optional[str] = typer.Option(None, "--language", help="Language hint, e.g. 'en'."),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Override the stored API key."),
    transcribe_after: bool = typer.Option(True, "--transcribe/--no-transcribe", help="Send the recording for transcription."),
    keep: bool = typer.Option(False, "--keep", help="Keep the audio file after transcription."),
) -> None:
    """Record from the microphone until Enter is pressed."""

    cfg = _load()
    controller = CaptureController.from_config(cfg)

    try:
        path = asyncio.run(controller.start())
    except VoicenoteError as exc:
        _fail(exc)

    typer.secho(f"Recording to {path}. Press Enter to stop, Ctrl-C to cancel.", fg=typer.colors.BLUE)
    try:
        input()
    except (KeyboardInterrupt, EOFError):
        asyncio.run(controller.cancel())
        typer.secho("\nRecording cancelled.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    try:
        path = asyncio.run(controller.stop())
    except VoicenoteError as exc:
        _fail(exc)

    if not transcribe_after:
        typer.echo(str(path))
        return

    key, lang = _resolve_credentials(cfg, api_key, language)
    text = _transcribe(cfg, path, key, lang)
    typer.echo(text)
    if keep:
        typer.secho(f"\nAudio kept at {path}.", fg=typer.colors.BLUE)
    else:
        path.unlink(missing_ok=True)


@app.command()
def transcribe(
    audio: Path = typer.Argument(..., help="Path to the audio file."),
    language: Optional[str] = typer.Option(None, "--language", help="Language hint, e.g. 'en'."),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Override the stored API key."),
) -> None:
    """Transcribe an existing audio file."""

    cfg = _load()
    key, lang = _resolve_credentials(cfg, api_key, language)
    typer.echo(_transcribe(cfg, audio, key, lang))


@app.command()
def settings(
    provider: Optional[str] = typer.Option(None, help="Speech-to-text provider."),
    api_key: Optional[str] = typer.Option(None, help="API key for the provider."),
    model: Optional[str] = typer.Option(None, help="Model identifier."),
    language: Optional[str] = typer.Option(None, help="Default language hint."),
    show: bool = typer.Option(False, "--show", help="Display the stored settings."),
) -> None:
    """Update or inspect speech-to-text settings."""

    cfg = _load()
    store, current = _load_settings(cfg)

    if show or not any([provider, api_key, model, language]):
        data = asdict(current)
        if data["api_key"]:
            data["api_key"] = "***"
        typer.echo(json.dumps(data, indent=2))
        return

    updated = SttSettings(
        provider=provider or current.provider,
        api_key=api_key,
        model=model or current.model,
        language=language,
    )
    try:
        save_stt_settings(store, updated)
    except StorageError as exc:
        _fail(exc)
    typer.secho("Settings updated.", fg=typer.colors.BLUE)


@app.command()
def config(
    recorder_binary: Optional[str] = typer.Option(None, help="Recording utility to launch."),
    recording_dir: Optional[str] = typer.Option(None, help="Directory for new recordings."),
    stop_grace_period: Optional[float] = typer.Option(None, help="Seconds to wait for the recorder before killing it."),
    api_url: Optional[str] = typer.Option(None, help="Transcription endpoint."),
    request_timeout: Optional[float] = typer.Option(None, help="HTTP timeout (seconds) for transcription."),
    settings_db: Optional[str] = typer.Option(None, help="Path of the settings database."),
    show: bool = typer.Option(False, "--show", help="Display the active configuration."),
) -> None:
    """Update or inspect application configuration."""

    updates: Dict[str, object] = {
        key: value
        for key, value in {
            "recorder_binary": recorder_binary,
            "recording_dir": recording_dir,
            "stop_grace_period": stop_grace_period,
            "api_url": api_url,
            "request_timeout": request_timeout,
            "settings_db": settings_db,
        }.items()
        if value is not None
    }

    if show or not updates:
        typer.echo(json.dumps(asdict(_load()), indent=2, default=str))
        return

    try:
        config_mod.update_config(**updates)
    except ConfigError as exc:
        _fail(exc)
    typer.secho("Configuration updated.", fg=typer.colors.BLUE)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind."),
    port: int = typer.Option(8765, help="Port to listen on."),
) -> None:  # pragma: no cover - runs a server
    """Expose the recording and transcription commands over HTTP."""

    import uvicorn

    from .api import create_app

    cfg = _load()
    api = create_app(
        controller=CaptureController.from_config(cfg),
        client=TranscriptionClient.from_config(cfg),
        store=_open_store(cfg),
    )
    uvicorn.run(api, host=host, port=port)


if __name__ == "__main__":  # pragma: no cover
    app()
