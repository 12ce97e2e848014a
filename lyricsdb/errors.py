"""
Exception hierarchy for the pipeline.

Every stage wraps the errors of the library it drives (pydub, Cloud
Storage, Speech-to-Text, the filesystem) in one of the classes below so a
caller can tell which stage of a file's pipeline failed without knowing
about the underlying client libraries.
"""

from __future__ import annotations

import enum


class Stage(str, enum.Enum):
    """Stages of a single file's pipeline, in the order they run."""

    PENDING = "pending"
    TRANSCODED = "transcoded"
    METADATA_EXTRACTED = "metadata_extracted"
    UPLOADED = "uploaded"
    TRANSCRIBED = "transcribed"


class PipelineError(Exception):
    """Base class for stage failures.

    ``stage`` is the last stage the file had successfully reached when the
    error was raised.
    """

    stage = Stage.PENDING

    def __init__(self, message: str, *, path: str | None = None):
        self.path = path
        super().__init__(message)


class ConfigError(PipelineError, ValueError):
    """Raised when the pipeline configuration is missing or invalid."""


class TranscodeError(PipelineError):
    """Raised when ffmpeg cannot decode, convert or probe an input file."""


class UploadError(PipelineError):
    """Raised when a file cannot be written to Cloud Storage."""

    stage = Stage.METADATA_EXTRACTED


class RecognitionError(PipelineError):
    """Raised when the speech recognition job fails or times out."""

    stage = Stage.UPLOADED


class PersistenceError(PipelineError):
    """Raised when a transcript cannot be written to disk.

    The serialised transcript is kept on the exception so an interactive
    caller can still return it.
    """

    stage = Stage.UPLOADED

    def __init__(self, message: str, *, path: str | None = None, transcript_json: str = ""):
        self.transcript_json = transcript_json
        super().__init__(message, path=path)
