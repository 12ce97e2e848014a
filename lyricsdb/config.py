"""
Pipeline configuration.

All settings live on :class:`PipelineConfig`, which is passed explicitly to
the upload and transcription stages and to the HTTP app.  The environment
is only consulted by :meth:`PipelineConfig.from_env`:

* ``BUCKET_NAME`` – Cloud Storage bucket receiving the normalised audio.
* ``DATA_ROOT`` – Local root for uploads, processed audio and transcripts.
* ``OUTPUT_FORMAT``, ``SAMPLE_RATE``, ``CHANNEL_COUNT``, ``BIT_RATE`` –
  ffmpeg conversion settings.
* ``LANGUAGE_CODE``, ``SPEECH_ENCODING`` – recognition profile.
* ``UPLOAD_TIMEOUT``, ``RECOGNITION_TIMEOUT`` – client-side bounds in
  seconds.
* ``LOG_LEVEL`` – Logging level for the entrypoints.

Google credentials are resolved by the client libraries themselves
(``GOOGLE_APPLICATION_CREDENTIALS`` or the metadata server).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .audio_processor import TranscodeOptions
from .errors import ConfigError


@dataclass(frozen=True)
class PipelineConfig:
    bucket_name: Optional[str] = None
    data_root: Path = Path("data")
    output_format: str = "wav"
    sample_rate: int = 44_100
    channel_count: int = 2
    bit_rate: Optional[int] = None
    language_code: str = "en-GB"
    encoding: str = "LINEAR16"
    upload_timeout: float = 240.0
    recognition_timeout: float = 3600.0
    log_level: str = "INFO"

    @property
    def uploads_dir(self) -> Path:
        return Path(self.data_root) / "uploads"

    @property
    def processed_dir(self) -> Path:
        return Path(self.data_root) / "processed"

    def transcode_options(self) -> TranscodeOptions:
        return TranscodeOptions(
            output_format=self.output_format,
            sample_rate=self.sample_rate,
            channel_count=self.channel_count,
            bit_rate=self.bit_rate,
        )

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        env_file: Optional[str] = ".env",
    ) -> "PipelineConfig":
        """Build a configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.  When given,
                ``env_file`` is ignored.
            env_file: Optional dotenv file loaded into ``os.environ`` first.
                Variables already set in the environment win.

        Raises:
            ConfigError: If a numeric setting cannot be parsed.
        """
        if environ is None:
            if env_file:
                load_dotenv(env_file, override=False)
            environ = os.environ

        bit_rate = environ.get("BIT_RATE")
        return cls(
            bucket_name=environ.get("BUCKET_NAME") or None,
            data_root=Path(environ.get("DATA_ROOT", "data")),
            output_format=environ.get("OUTPUT_FORMAT", "wav"),
            sample_rate=_parse_number(environ, "SAMPLE_RATE", 44_100, int),
            channel_count=_parse_number(environ, "CHANNEL_COUNT", 2, int),
            bit_rate=_parse_number(environ, "BIT_RATE", 0, int) if bit_rate else None,
            language_code=environ.get("LANGUAGE_CODE", "en-GB"),
            encoding=environ.get("SPEECH_ENCODING", "LINEAR16").upper(),
            upload_timeout=_parse_number(environ, "UPLOAD_TIMEOUT", 240.0, float),
            recognition_timeout=_parse_number(environ, "RECOGNITION_TIMEOUT", 3600.0, float),
            log_level=environ.get("LOG_LEVEL", "INFO").upper(),
        )


def _parse_number(environ: Mapping[str, str], name: str, default, cast):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value
