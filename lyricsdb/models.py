"""
Value types shared by the pipeline stages.

``Metadata`` is the per-file record that travels through the pipeline and
is handed back to the caller once the file is done.  ``Transcript`` is one
recognised alternative of one segment of speech.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List


@dataclass
class Metadata:
    """Identity and processing state of one track."""

    artist: str = ""
    album: str = ""
    title: str = ""
    track: str = ""
    duration: str = ""
    filename: str = ""
    processed: bool = False
    transcribed: bool = False

    def mark_transcribed(self) -> None:
        """Record that a transcript for this track has been persisted.

        Raises:
            ValueError: If the track has not been transcoded yet.
        """
        if not self.processed:
            raise ValueError(f"Cannot mark unprocessed track as transcribed: {self.filename or '<empty>'}")
        self.transcribed = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


Tracks = List[Metadata]


@dataclass(frozen=True)
class Transcript:
    """One alternative of one recognised segment.

    ``line`` is the segment's position in the full response and is shared by
    all alternatives of that segment; ``alternate`` ranks the alternatives,
    0 being the most likely.  ``time`` is the segment's end offset in
    seconds.
    """

    line: int
    time: float
    text: str
    channel_tag: int
    alternate: int
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
