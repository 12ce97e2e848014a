"""
Core package for the lyrics transcription pipeline.

This package contains the components used by the HTTP app and the CLI to
normalise audio with ffmpeg, extract track metadata, upload the normalised
files to Cloud Storage and run speech recognition over them.
"""

__version__ = "0.3.0"
