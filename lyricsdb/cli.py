"""Command line driver for the pipeline."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import click

from . import __version__, tasks
from .batch import discover_inputs, process_batch
from .config import PipelineConfig
from .errors import PersistenceError, PipelineError, Stage
from .models import Tracks
from .storage_service import StorageUploader
from .stt_service import Transcriber

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="lyricsdb")
@click.option("--env-file", default=".env", type=click.Path(dir_okay=False), help="dotenv file to load")
@click.pass_context
def cli(ctx: click.Context, env_file: str) -> None:
    """Convert, tag and transcribe audio files."""
    config = PipelineConfig.from_env(env_file=env_file)
    logging.basicConfig(level=config.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    ctx.obj = config


@cli.command("batch")
@click.argument("input_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), default=None, help="Defaults to DATA_ROOT/processed")
@click.option("--pattern", default="*.*", show_default=True, help="Glob selecting the input files")
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Cap on concurrent conversions")
@click.option("--transcribe/--no-transcribe", default=False, help="Upload and transcribe every converted file")
@click.pass_obj
def batch_cmd(
    config: PipelineConfig,
    input_dir: str,
    output_dir: Optional[str],
    pattern: str,
    workers: Optional[int],
    transcribe: bool,
) -> None:
    """Convert every file in INPUT_DIR and print one JSON line per file."""
    inputs = discover_inputs(input_dir, pattern)
    if not inputs:
        click.echo(f"No files matching {pattern} in {input_dir}", err=True)
        return

    out_dir = Path(output_dir) if output_dir else config.processed_dir
    uploader = StorageUploader(config) if transcribe else None
    transcriber = Transcriber(config) if transcribe else None
    tracks: Tracks = []
    failures = 0
    for result in process_batch(inputs, out_dir, config.transcode_options(), max_workers=workers):
        record = {"input": result.input_path, "metadata": result.metadata.to_dict(), "warnings": result.warnings}
        if result.ok and transcribe:
            outcome = tasks.PipelineOutcome(
                metadata=result.metadata, stage=Stage.METADATA_EXTRACTED, warnings=result.warnings
            )
            try:
                tasks.transcribe_processed(outcome, config, uploader=uploader, transcriber=transcriber)
            except PipelineError as exc:
                logger.error("Transcription failed for %s: %s", result.input_path, exc)
                record["error"] = str(exc)
            record["metadata"] = result.metadata.to_dict()
        elif not result.ok:
            record["error"] = str(result.error)
        tracks.append(result.metadata)
        if "error" in record:
            failures += 1
        click.echo(json.dumps(record, ensure_ascii=False))

    summary = f"{len(tracks) - failures}/{len(tracks)} files succeeded, {sum(t.processed for t in tracks)} processed"
    if transcribe:
        summary += f", {sum(t.transcribed for t in tracks)} transcribed"
    click.echo(summary, err=True)
    if failures:
        raise SystemExit(1)


@cli.command("transcribe")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def transcribe_cmd(config: PipelineConfig, input_file: str) -> None:
    """Run INPUT_FILE through the whole pipeline and print its transcript."""
    try:
        outcome = tasks.process_file(input_file, config)
    except PersistenceError as exc:
        click.echo(exc.transcript_json)
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)
    except PipelineError as exc:
        click.echo(f"Error ({exc.stage.value}): {exc}", err=True)
        raise SystemExit(1)
    click.echo(json.dumps({"metadata": outcome.metadata.to_dict(), "transcript": json.loads(outcome.transcript_json)}))


if __name__ == "__main__":
    cli()
