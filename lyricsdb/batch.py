"""
Concurrent batch conversion.

:func:`process_batch` starts one unit of work per input file.  Each unit
transcodes its file and extracts the track metadata, then reports a single
:class:`BatchResult`.  Results are yielded as the units finish, so the order
of the stream says nothing about the order of the inputs.  A failing file
only affects its own result.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from . import audio_processor
from .audio_processor import TranscodeOptions
from .errors import TranscodeError
from .metadata import extract_metadata
from .models import Metadata

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    input_path: str
    metadata: Metadata
    error: Optional[Exception] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


def discover_inputs(input_dir: str | Path, pattern: str = "*.*") -> List[str]:
    """List the files in ``input_dir`` matching ``pattern``, sorted by name."""
    return sorted(str(p) for p in Path(input_dir).glob(pattern) if p.is_file())


def convert_file(input_path: str, output_dir: str | Path, options: TranscodeOptions) -> BatchResult:
    """Transcode one file and extract its metadata.

    Never raises: failures are reported on the returned result together
    with an empty, unprocessed :class:`Metadata`.
    """
    try:
        output = audio_processor.transcode(input_path, output_dir, options)
    except TranscodeError as exc:
        logger.warning("Transcode failed for %s: %s", input_path, exc)
        return BatchResult(input_path=input_path, metadata=Metadata(), error=exc)
    except Exception as exc:
        logger.exception("Unexpected error transcoding %s", input_path)
        return BatchResult(input_path=input_path, metadata=Metadata(), error=exc)

    extraction = extract_metadata(output.raw_tags)
    extraction.metadata.filename = str(output.output_path)
    if extraction.warnings:
        logger.warning("Incomplete metadata for %s: %s", input_path, extraction.warning)
    return BatchResult(input_path=input_path, metadata=extraction.metadata, warnings=extraction.warnings)


def _drain(executor: ThreadPoolExecutor, futures: List[Future]) -> Iterator[BatchResult]:
    try:
        for future in as_completed(futures):
            yield future.result()
    finally:
        # Units that have not started yet are dropped if the consumer stops early.
        executor.shutdown(wait=True, cancel_futures=True)


def process_batch(
    input_paths: Iterable[str | Path],
    output_dir: str | Path,
    options: TranscodeOptions,
    *,
    max_workers: Optional[int] = None,
) -> Iterator[BatchResult]:
    """Convert ``input_paths`` concurrently.

    The work is submitted before this function returns; iterating the
    result only collects it.

    Args:
        input_paths: Files to convert.
        output_dir: Directory receiving the converted files.
        options: ffmpeg output settings shared by every file.
        max_workers: Upper bound on concurrent conversions.  Defaults to one
            worker per input file.

    Returns:
        An iterator yielding exactly one :class:`BatchResult` per input path,
        in completion order.
    """
    paths = [str(p) for p in input_paths]
    if not paths:
        return iter(())
    logger.info("Processing batch of %d files into %s", len(paths), output_dir)
    executor = ThreadPoolExecutor(max_workers=max_workers or len(paths), thread_name_prefix="transcode")
    futures = [executor.submit(convert_file, path, output_dir, options) for path in paths]
    return _drain(executor, futures)


def process_directory(
    input_dir: str | Path,
    output_dir: str | Path,
    options: TranscodeOptions,
    *,
    pattern: str = "*.*",
    max_workers: Optional[int] = None,
) -> Iterator[BatchResult]:
    """Run :func:`process_batch` over every file found in ``input_dir``."""
    return process_batch(discover_inputs(input_dir, pattern), output_dir, options, max_workers=max_workers)
