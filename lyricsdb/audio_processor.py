"""
Audio conversion utilities.

This module converts incoming audio files to the normalised format expected
by the speech recogniser and probes them for their tags.  Conversions are
performed locally using the `pydub` library which in turn relies on
`ffmpeg` and `ffprobe`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from json import JSONDecodeError
from pathlib import Path
from typing import Any, Dict, Optional

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError, CouldntEncodeError
from pydub.utils import mediainfo_json

from .errors import TranscodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscodeOptions:
    """ffmpeg output settings.

    ``bit_rate`` is in kbit/s and only matters for compressed formats.
    """

    output_format: str = "wav"
    sample_rate: int = 44_100
    channel_count: int = 2
    bit_rate: Optional[int] = None


@dataclass(frozen=True)
class TranscodeOutput:
    output_path: Path
    raw_tags: Dict[str, Any]


def output_path_for(input_path: str | Path, output_dir: str | Path, output_format: str) -> Path:
    """Return ``output_dir/<input stem>.<output_format>``."""
    return Path(output_dir) / f"{Path(input_path).stem}.{output_format}"


def probe(input_path: str | Path) -> Dict[str, Any]:
    """Read the ffprobe JSON for ``input_path``.

    Raises:
        TranscodeError: If ffprobe fails or reports no format section.
    """
    try:
        info = mediainfo_json(str(input_path))
    except (OSError, JSONDecodeError) as exc:
        raise TranscodeError(f"ffprobe failed for {input_path}: {exc}", path=str(input_path)) from exc
    if not info or "format" not in info:
        raise TranscodeError(f"ffprobe returned no format data for {input_path}", path=str(input_path))
    return info


def transcode(input_path: str | Path, output_dir: str | Path, options: TranscodeOptions) -> TranscodeOutput:
    """Convert ``input_path`` per ``options`` and probe its tags.

    The output lands in ``output_dir`` under the input's stem with the
    output format as extension, replacing any earlier file at that path.

    Returns:
        The output path together with the raw ffprobe data of the input.

    Raises:
        TranscodeError: If the input cannot be decoded, the output cannot be
            written, or the input cannot be probed.
    """
    out = output_path_for(input_path, output_dir, options.output_format)
    bitrate = f"{options.bit_rate}k" if options.bit_rate else None
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        audio = AudioSegment.from_file(str(input_path))
        audio = audio.set_channels(options.channel_count).set_frame_rate(options.sample_rate)
        exported = audio.export(str(out), format=options.output_format, bitrate=bitrate)
        exported.close()
    # pydub raises IndexError when ffprobe finds no audio stream in the input.
    except (CouldntDecodeError, CouldntEncodeError, OSError, IndexError) as exc:
        raise TranscodeError(f"ffmpeg failed for {input_path}: {exc}", path=str(input_path)) from exc
    logger.info("Transcoded %s -> %s", input_path, out)
    return TranscodeOutput(output_path=out, raw_tags=probe(input_path))
