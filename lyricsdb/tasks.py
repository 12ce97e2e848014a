"""
Orchestration layer for a single file.

:func:`process_file` runs one audio file through every stage of the
pipeline:

1. Convert it with ffmpeg into ``config.processed_dir``.
2. Extract its tags into a :class:`~lyricsdb.models.Metadata` record.
3. Upload the converted file to the configured bucket.
4. Transcribe it and store the transcript under ``config.data_root``.

Errors propagate to the caller as :class:`~lyricsdb.errors.PipelineError`
subclasses; nothing is retried.  The HTTP app and the CLI both drive their
per-file work through this module.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from . import audio_processor
from .config import PipelineConfig
from .errors import Stage
from .metadata import extract_metadata
from .models import Metadata
from .storage_service import StorageUploader
from .stt_service import Transcriber

logger = logging.getLogger(__name__)


@dataclass
class PipelineOutcome:
    metadata: Metadata
    stage: Stage = Stage.PENDING
    gcs_uri: str = ""
    transcript_json: str = ""
    warnings: List[str] = field(default_factory=list)


def prepare(input_path: str, config: PipelineConfig) -> PipelineOutcome:
    """Convert ``input_path`` and extract its metadata.

    Raises:
        TranscodeError: If ffmpeg fails.
    """
    output = audio_processor.transcode(input_path, config.processed_dir, config.transcode_options())
    extraction = extract_metadata(output.raw_tags)
    extraction.metadata.filename = str(output.output_path)
    if extraction.warnings:
        logger.warning("Incomplete parsing of metadata for %s: %s", input_path, extraction.warning)
    logger.info("File processed: %s", input_path)
    return PipelineOutcome(
        metadata=extraction.metadata,
        stage=Stage.METADATA_EXTRACTED,
        warnings=extraction.warnings,
    )


def transcribe_processed(
    outcome: PipelineOutcome,
    config: PipelineConfig,
    *,
    uploader: StorageUploader,
    transcriber: Transcriber,
) -> PipelineOutcome:
    """Upload and transcribe a file that :func:`prepare` has converted.

    Raises:
        ValueError: If ``outcome`` has not been processed.
        ConfigError: If no bucket is configured.
        UploadError: If the upload fails.
        RecognitionError: If recognition fails.
        PersistenceError: If the transcript cannot be written.
    """
    metadata = outcome.metadata
    if not metadata.processed:
        raise ValueError("Only processed tracks can be transcribed")
    outcome.gcs_uri = uploader.upload(metadata.filename)
    outcome.stage = Stage.UPLOADED
    outcome.transcript_json = transcriber.transcribe(outcome.gcs_uri, metadata, config.data_root)
    metadata.mark_transcribed()
    outcome.stage = Stage.TRANSCRIBED
    logger.info("File transcribed: %s", metadata.filename)
    return outcome


def process_file(
    input_path: str,
    config: PipelineConfig,
    *,
    uploader: Optional[StorageUploader] = None,
    transcriber: Optional[Transcriber] = None,
) -> PipelineOutcome:
    """Run ``input_path`` through the whole pipeline."""
    outcome = prepare(input_path, config)
    return transcribe_processed(
        outcome,
        config,
        uploader=uploader or StorageUploader(config),
        transcriber=transcriber or Transcriber(config),
    )
