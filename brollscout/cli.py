"""Command-line interface for B-Roll Scout.

Built with Click for commands and Rich for terminal output.

Usage:
    broll-scout run --media-dir ./media --marketing marketing.md -o suggestions.json
    broll-scout analyze
    broll-scout suggest
    broll-scout cache show
    broll-scout config set-key
    broll-scout config delete-key
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Sequence

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from brollscout import __version__
from brollscout.config import (
    AppConfig,
    ConfigurationError,
    KeyStorageBackend,
    configure_api_key,
    get_config,
    key_manager_for,
    resolve_api_key,
)
from brollscout.models import BrollSuggestion, BrollSuggestions, MediaItem
from brollscout.utils.logging import setup_logging

logger = logging.getLogger(__name__)

console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def print_header(text: str) -> None:
    console.print()
    console.print(Panel(text, style="bold blue", expand=False))
    console.print()


def print_success(text: str) -> None:
    console.print(f"[green]✓[/green] {text}")


def print_warning(text: str) -> None:
    console.print(f"[yellow]⚠[/yellow] {text}")


def print_error(text: str) -> None:
    console.print(f"[red]✗[/red] {text}")


def print_info(text: str) -> None:
    console.print(f"[blue]ℹ[/blue] {text}")


def _load_config(ctx: click.Context, **overrides: Any) -> AppConfig:
    """Load the app config and apply non-empty pipeline overrides."""
    config: AppConfig = ctx.obj["config"]
    updates = {k: v for k, v in overrides.items() if v is not None}
    if updates:
        pipeline = config.pipeline.model_copy(update=updates)
        config = config.model_copy(update={"pipeline": pipeline})
    return config


def _build_pipeline(config: AppConfig, no_ai: bool, no_frames: bool) -> Any:
    # Imported here to keep CLI startup fast
    from brollscout.pipeline import BrollPipeline

    api_key = None if no_ai else resolve_api_key(config)

    if no_ai:
        print_info("Running without AI (--no-ai): new files get fallback descriptions")
    elif not api_key:
        print_warning("Gemini API key not configured; analysis will use fallback descriptions")
        console.print("  Run: [bold]broll-scout config set-key[/bold]")

    return BrollPipeline.from_config(
        config,
        api_key=api_key,
        use_ai=not no_ai,
        extract_frames=not no_frames,
    )


def _read_context(config: AppConfig) -> str:
    from brollscout.pipeline import read_marketing_context

    path = config.pipeline.marketing_path
    if not path.exists():
        print_warning(f"Marketing context not found at {path}; continuing without it")
    return read_marketing_context(path)


def _show_items(items: Sequence[MediaItem], title: str = "Analyzed Media") -> None:
    table = Table(title=title, show_header=True)
    table.add_column("File")
    table.add_column("Type")
    table.add_column("Description", overflow="fold")
    table.add_column("Relevance", overflow="fold")

    for item in items:
        description = escape(item.description)
        if item.is_fallback:
            description = f"[dim]{description}[/dim]"
        table.add_row(escape(item.filename), item.media_type.value, description, escape(item.relevance))

    console.print(table)


def _show_suggestions(suggestions: Sequence[BrollSuggestion]) -> None:
    if not suggestions:
        print_warning("No B-roll suggestions returned")
        return

    table = Table(title="B-Roll Suggestions", show_header=True)
    table.add_column("File")
    table.add_column("B-Roll")
    table.add_column("Start (s)", justify="right")
    table.add_column("Duration (s)", justify="right")

    for suggestion in suggestions:
        if not suggestion.suggested_broll:
            table.add_row(escape(suggestion.filename), "[dim]none[/dim]", "", "")
        for overlay in suggestion.suggested_broll:
            table.add_row(
                escape(suggestion.filename),
                escape(overlay.broll_filename),
                f"{overlay.timestamp:g}",
                f"{overlay.duration:g}",
            )

    console.print(table)


def _write_suggestions(suggestions: Sequence[BrollSuggestion], output: Path) -> None:
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(
            BrollSuggestions(suggestions=list(suggestions)).model_dump_json(indent=2),
            encoding="utf-8",
        )
        print_success(f"Suggestions written to {output}")
    except OSError as e:
        print_error(f"Could not write suggestions to {output}: {e}")


def _report_analysis(total: int, new: int, fallbacks: int, saved: bool) -> None:
    print_success(f"{total} media items ({new} newly analyzed)")
    if fallbacks:
        print_warning(f"{fallbacks} new items used fallback descriptions")
    if not saved:
        print_warning("Analysis cache could not be saved")


# Options shared by commands that touch the pipeline paths
def pipeline_options(func: Any) -> Any:
    options = [
        click.option("--media-dir", type=click.Path(path_type=Path), help="Media directory to scan"),
        click.option("--transcripts", "transcript_dir", type=click.Path(path_type=Path),
                     help="Directory with <name>.txt video transcripts"),
        click.option("--cache", "cache_path", type=click.Path(path_type=Path), help="Analysis cache file"),
        click.option("--marketing", "marketing_path", type=click.Path(path_type=Path),
                     help="Marketing context document"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="B-Roll Scout")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--config", "-c", "config_path", type=click.Path(path_type=Path), help="Path to config file")
@click.option("--log-file", type=click.Path(path_type=Path), help="Also write logs to this file")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None, log_file: Path | None) -> None:
    """B-Roll Scout - analyze local media and plan B-roll overlays with AI.

    Quick start:
        broll-scout config set-key
        broll-scout run --media-dir ./media --marketing marketing.md
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["config"] = get_config(config_path)

    setup_logging(verbose=verbose, log_file=log_file)


# =============================================================================
# Run / Analyze / Suggest
# =============================================================================


@cli.command()
@pipeline_options
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Write suggestions JSON here")
@click.option("--no-ai", is_flag=True, help="Skip all AI calls")
@click.option("--no-frames", is_flag=True, help="Do not extract video frames with ffmpeg")
@click.pass_context
def run(
    ctx: click.Context,
    media_dir: Path | None,
    transcript_dir: Path | None,
    cache_path: Path | None,
    marketing_path: Path | None,
    output: Path | None,
    no_ai: bool,
    no_frames: bool,
) -> None:
    """Analyze new media, then request B-roll suggestions."""
    config = _load_config(
        ctx,
        media_dir=media_dir,
        transcript_dir=transcript_dir,
        cache_path=cache_path,
        marketing_path=marketing_path,
    )

    print_header("🎬 B-Roll Scout")

    marketing_context = _read_context(config)
    pipeline = _build_pipeline(config, no_ai, no_frames)

    result = pipeline.run(marketing_context)
    _report_analysis(len(result.items), len(result.new_items), result.fallback_count, result.cache_saved)
    _show_suggestions(result.suggestions)

    if output:
        _write_suggestions(result.suggestions, output)


@cli.command()
@pipeline_options
@click.option("--no-ai", is_flag=True, help="Skip all AI calls")
@click.option("--no-frames", is_flag=True, help="Do not extract video frames with ffmpeg")
@click.pass_context
def analyze(
    ctx: click.Context,
    media_dir: Path | None,
    transcript_dir: Path | None,
    cache_path: Path | None,
    marketing_path: Path | None,
    no_ai: bool,
    no_frames: bool,
) -> None:
    """Analyze media files not yet in the cache."""
    config = _load_config(
        ctx,
        media_dir=media_dir,
        transcript_dir=transcript_dir,
        cache_path=cache_path,
        marketing_path=marketing_path,
    )

    marketing_context = _read_context(config)
    pipeline = _build_pipeline(config, no_ai, no_frames)

    update = pipeline.analyze(marketing_context)
    _report_analysis(len(update.items), len(update.new_items), update.fallback_count, update.persisted)
    _show_items(update.items)


@cli.command()
@pipeline_options
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Write suggestions JSON here")
@click.pass_context
def suggest(
    ctx: click.Context,
    media_dir: Path | None,
    transcript_dir: Path | None,
    cache_path: Path | None,
    marketing_path: Path | None,
    output: Path | None,
) -> None:
    """Request B-roll suggestions for everything already in the cache."""
    config = _load_config(
        ctx,
        media_dir=media_dir,
        transcript_dir=transcript_dir,
        cache_path=cache_path,
        marketing_path=marketing_path,
    )

    marketing_context = _read_context(config)
    pipeline = _build_pipeline(config, no_ai=False, no_frames=True)

    items = pipeline.cache.load()
    if not items:
        print_warning(f"No analyzed media in {config.pipeline.cache_path}; run 'broll-scout analyze' first")

    suggestions = pipeline.suggest(items, marketing_context)
    _show_suggestions(suggestions)

    if output:
        _write_suggestions(suggestions, output)


# =============================================================================
# Cache Command Group
# =============================================================================


@cli.group()
def cache() -> None:
    """Inspect or reset the analysis cache."""
    pass


@cache.command("show")
@click.option("--cache", "cache_path", type=click.Path(path_type=Path), help="Analysis cache file")
@click.pass_context
def cache_show(ctx: click.Context, cache_path: Path | None) -> None:
    """List cached media items."""
    from brollscout.ai.cache import AnalysisCache

    config = _load_config(ctx, cache_path=cache_path)
    analysis_cache = AnalysisCache(config.pipeline.cache_path)

    items = analysis_cache.load()
    if not items:
        print_info(f"Cache at {analysis_cache.path} is empty")
        return

    _show_items(items, title=f"Cache: {analysis_cache.path}")


@cache.command("clear")
@click.option("--cache", "cache_path", type=click.Path(path_type=Path), help="Analysis cache file")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def cache_clear(ctx: click.Context, cache_path: Path | None, yes: bool) -> None:
    """Delete the cache so every file is analyzed again."""
    from brollscout.ai.cache import AnalysisCache

    config = _load_config(ctx, cache_path=cache_path)
    analysis_cache = AnalysisCache(config.pipeline.cache_path)

    if not analysis_cache.exists():
        print_info("No cache to clear")
        return

    if not yes and not click.confirm(f"Delete {analysis_cache.path}?", default=False):
        return

    if analysis_cache.clear():
        print_success(f"Cleared {analysis_cache.path}")
    else:
        print_error(f"Could not delete {analysis_cache.path}")
        ctx.exit(1)


# =============================================================================
# Config Command Group
# =============================================================================


@cli.group()
def config() -> None:
    """Manage configuration and the Gemini API key."""
    pass


@config.command("set-key")
@click.option(
    "--backend",
    type=click.Choice([b.value for b in KeyStorageBackend]),
    default=KeyStorageBackend.KEYRING.value,
    show_default=True,
    help="Where to store the key",
)
@click.option("--key", help="API key (prompted for when omitted)")
@click.pass_context
def config_set_key(ctx: click.Context, backend: str, key: str | None) -> None:
    """Store the Gemini API key."""
    if not key:
        key = Prompt.ask("Gemini API key", password=True, console=console)

    try:
        configure_api_key(key.strip(), KeyStorageBackend(backend), ctx.obj["config_path"])
    except ConfigurationError as e:
        print_error(str(e))
        ctx.exit(1)
        return

    print_success(f"API key stored ({backend})")


@config.command("delete-key")
@click.pass_context
def config_delete_key(ctx: click.Context) -> None:
    """Remove the stored Gemini API key."""
    config: AppConfig = ctx.obj["config"]

    try:
        removed = key_manager_for(config).delete_key()
    except ConfigurationError as e:
        print_error(str(e))
        ctx.exit(1)
        return

    if removed:
        print_success(f"API key removed ({config.key_storage_backend.value})")
    else:
        print_info("No stored API key to remove")


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show the effective configuration."""
    config: AppConfig = ctx.obj["config"]
    settings = config.pipeline

    table = Table(title="Configuration", show_header=False)
    table.add_column("Setting")
    table.add_column("Value")

    table.add_row("Model", config.ai.model_name)
    table.add_row("Media directory", str(settings.media_dir))
    table.add_row("Transcripts", str(settings.transcript_dir))
    table.add_row("Cache", str(settings.cache_path))
    table.add_row("Marketing context", str(settings.marketing_path))
    table.add_row("Key backend", config.key_storage_backend.value)
    configured = key_manager_for(config).is_key_configured()
    table.add_row("API key", "configured" if configured else "[red]missing[/red]")

    console.print(table)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
