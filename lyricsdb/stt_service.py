"""
Google Speech-to-Text service wrapper.

This module submits a normalised file stored in Cloud Storage for
long-running recognition, flattens the response into
:class:`~lyricsdb.models.Transcript` records and writes them to disk under
``<output_root>/transcripts/<artist>/<album>/<title>.json``.

Usage::

    from lyricsdb.stt_service import Transcriber

    transcriber = Transcriber(config)
    text = transcriber.transcribe("gs://my-bucket/01 Smoke Signals.wav", metadata, "data")
"""

from __future__ import annotations

import json
import logging
import re
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any, Dict, List, Optional

from google.api_core import exceptions as gapi_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import speech_v1p1beta1 as speech
from google.protobuf.json_format import MessageToDict

from .config import PipelineConfig
from .errors import ConfigError, PersistenceError, RecognitionError
from .models import Metadata, Transcript

logger = logging.getLogger(__name__)

TRANSCRIPTS_DIR = "transcripts"
PLACEHOLDERS = ("Unknown Artist", "Unknown Album", "Untitled")

_UNSAFE_SEGMENT = re.compile(r"[/\\\x00]")


def _parse_seconds(time_str: str) -> float:
    match = re.match(r"([0-9]+(?:\.[0-9]+)?)s", time_str)
    return float(match.group(1)) if match else 0.0


def build_transcripts(data: Dict[str, Any]) -> List[List[Transcript]]:
    """Flatten a Speech-to-Text response dictionary.

    Args:
        data: The response as returned by ``MessageToDict``.

    Returns:
        One list per result (segment) holding one :class:`Transcript` per
        alternative, both in response order.

    Raises:
        RecognitionError: If the response does not have the expected shape.
    """
    transcripts: List[List[Transcript]] = []
    try:
        for line, result in enumerate(data.get("results", [])):
            end = _parse_seconds(result.get("resultEndTime", "0s"))
            channel = int(result.get("channelTag", 0))
            transcripts.append(
                [
                    Transcript(
                        line=line,
                        time=end,
                        text=alt.get("transcript", ""),
                        channel_tag=channel,
                        alternate=alternate,
                        confidence=float(alt.get("confidence", 0.0)),
                    )
                    for alternate, alt in enumerate(result.get("alternatives", []))
                ]
            )
    except (AttributeError, TypeError, ValueError) as exc:
        raise RecognitionError(f"Malformed recognition response: {exc}") from exc
    return transcripts


def serialise_transcripts(transcripts: List[List[Transcript]]) -> str:
    return json.dumps([[t.to_dict() for t in segment] for segment in transcripts], ensure_ascii=False)


def _safe_segment(value: str, placeholder: str) -> str:
    segment = _UNSAFE_SEGMENT.sub("_", value or "").strip()
    if segment in ("", ".", ".."):
        return placeholder
    return segment


def transcript_path(output_root: str | Path, metadata: Metadata) -> Path:
    """Return where the transcript of ``metadata``'s track is stored.

    Path separators in the tags are replaced and missing tags are replaced
    by a placeholder, so every track maps to a file inside
    ``<output_root>/transcripts``.
    """
    artist, album, title = (
        _safe_segment(value, placeholder)
        for value, placeholder in zip((metadata.artist, metadata.album, metadata.title), PLACEHOLDERS)
    )
    return Path(output_root) / TRANSCRIPTS_DIR / artist / album / f"{title}.json"


class Transcriber:
    """Runs long-running recognition jobs and persists their transcripts."""

    def __init__(self, config: PipelineConfig, client: Optional[speech.SpeechClient] = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> speech.SpeechClient:
        if self._client is None:
            self._client = speech.SpeechClient()
        return self._client

    def recognition_config(self) -> speech.RecognitionConfig:
        try:
            encoding = speech.RecognitionConfig.AudioEncoding[self.config.encoding]
        except KeyError as exc:
            raise ConfigError(f"Unsupported speech encoding {self.config.encoding!r}") from exc
        return speech.RecognitionConfig(
            audio_channel_count=self.config.channel_count,
            enable_separate_recognition_per_channel=True,
            encoding=encoding,
            language_code=self.config.language_code,
        )

    def recognise(self, gcs_uri: str) -> Dict[str, Any]:
        """Run recognition for ``gcs_uri`` and return the response as a dict.

        Waits at most ``config.recognition_timeout`` seconds for the job.

        Raises:
            RecognitionError: If no credentials are found, the job cannot be
                submitted or fails remotely, or it does not finish in time.
        """
        audio = speech.RecognitionAudio(uri=gcs_uri)
        logger.info("Starting STT job for %s", gcs_uri)
        try:
            operation = self.client.long_running_recognize(config=self.recognition_config(), audio=audio)
            response = operation.result(timeout=self.config.recognition_timeout)
        except FutureTimeoutError as exc:
            raise RecognitionError(
                f"STT job for {gcs_uri} did not finish within {self.config.recognition_timeout}s", path=gcs_uri
            ) from exc
        except (gapi_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as exc:
            raise RecognitionError(f"STT job for {gcs_uri} failed: {exc}", path=gcs_uri) from exc
        logger.info("STT job complete for %s", gcs_uri)
        return MessageToDict(response._pb)

    def transcribe(self, gcs_uri: str, metadata: Metadata, output_root: str | Path) -> str:
        """Transcribe ``gcs_uri`` and store the transcript for ``metadata``.

        ``metadata.transcribed`` is left for the caller to set.

        Returns:
            The serialised transcript, as written to disk.

        Raises:
            RecognitionError: If recognition fails.
            PersistenceError: If the transcript cannot be written.  The
                serialised transcript is available on the exception.
        """
        transcripts = build_transcripts(self.recognise(gcs_uri))
        transcript_json = serialise_transcripts(transcripts)
        out = transcript_path(output_root, metadata)
        try:
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(transcript_json, encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(
                f"Could not write transcript {out}: {exc}", path=str(out), transcript_json=transcript_json
            ) from exc
        logger.info("Saved transcript with %d segments to %s", len(transcripts), out)
        return transcript_json
