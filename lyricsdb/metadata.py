"""
Track metadata extraction.

ffprobe reports the container tags of a file as a nested JSON structure.
The functions in this module pick the handful of fields the pipeline cares
about out of that structure.  Missing fields are not fatal: each one falls
back to an empty string and is reported as a warning so the track can
still be transcribed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

from .models import Metadata

logger = logging.getLogger(__name__)

# Metadata attribute -> key path inside the ffprobe JSON.
FIELD_PATHS = (
    ("artist", ("format", "tags", "artist")),
    ("album", ("format", "tags", "album")),
    ("title", ("format", "tags", "title")),
    ("track", ("format", "tags", "track")),
    ("duration", ("format", "duration")),
)


@dataclass
class ExtractionResult:
    """Extracted metadata plus the fields that could not be resolved."""

    metadata: Metadata
    warnings: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.warnings

    @property
    def warning(self) -> Optional[str]:
        """The last lookup miss, if any."""
        return self.warnings[-1] if self.warnings else None


class _NotFound(LookupError):
    pass


def _lookup(data: Any, path: Sequence[str]) -> str:
    node = data
    for key in path:
        if not isinstance(node, Mapping):
            raise _NotFound(key)
        if key in node:
            node = node[key]
            continue
        # Vorbis and FLAC tags usually come back upper-case.
        folded = {str(k).lower(): v for k, v in node.items()}
        if key.lower() not in folded:
            raise _NotFound(key)
        node = folded[key.lower()]
    if node is None or isinstance(node, Mapping):
        raise _NotFound(path[-1])
    return str(node)


def extract_metadata(raw_tags: Any) -> ExtractionResult:
    """Build a :class:`Metadata` from ffprobe output.

    Args:
        raw_tags: The parsed ffprobe JSON for a successfully transcoded file.

    Returns:
        An :class:`ExtractionResult` whose metadata is marked processed and
        holds every field that could be found; each missing field is empty
        and listed in ``warnings``.
    """
    values = {}
    warnings: List[str] = []
    for name, path in FIELD_PATHS:
        try:
            values[name] = _lookup(raw_tags, path)
        except _NotFound:
            values[name] = ""
            warnings.append(f"{'.'.join(path)} not found")
    if warnings:
        logger.debug("Incomplete metadata: %s", "; ".join(warnings))
    return ExtractionResult(metadata=Metadata(processed=True, **values), warnings=warnings)
