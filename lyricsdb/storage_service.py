"""
Cloud Storage upload wrapper.

The speech recogniser reads long audio from Cloud Storage only, so every
normalised file is pushed to the configured bucket before transcription.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Optional

from google.api_core import exceptions as gapi_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from .config import PipelineConfig
from .errors import ConfigError, UploadError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".wav": "audio/wav",
    ".flac": "audio/flac",
    ".mp3": "audio/mpeg",
    ".ogg": "audio/ogg",
}


class StorageUploader:
    """Uploads local files to a bucket under their base name."""

    def __init__(self, config: PipelineConfig, client: Optional[storage.Client] = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> storage.Client:
        if self._client is None:
            self._client = storage.Client()
        return self._client

    def upload(self, local_path: str, bucket_name: Optional[str] = None) -> str:
        """Upload ``local_path`` and return its ``gs://`` URI.

        An existing object with the same name is replaced.  The upload is
        attempted once and must finish within ``config.upload_timeout``
        seconds in total, however many requests it takes.

        Raises:
            ConfigError: If no bucket is given or configured.
            UploadError: If the file cannot be read, no credentials are
                found, or the upload fails or exceeds ``config.upload_timeout``.
        """
        bucket_name = bucket_name or self.config.bucket_name
        if not bucket_name:
            raise ConfigError("No bucket configured; set BUCKET_NAME", path=local_path)
        object_name = os.path.basename(local_path)
        content_type = CONTENT_TYPES.get(os.path.splitext(object_name)[1].lower())
        timeout = self.config.upload_timeout
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="upload")
        try:
            blob = self.client.bucket(bucket_name).blob(object_name)
            future = executor.submit(
                blob.upload_from_filename, local_path, content_type=content_type, timeout=timeout, retry=None
            )
            future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            raise UploadError(
                f"Upload of {local_path} to {bucket_name} did not finish within {timeout}s", path=local_path
            ) from exc
        except (gapi_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError, OSError) as exc:
            raise UploadError(f"Upload of {local_path} to {bucket_name} failed: {exc}", path=local_path) from exc
        finally:
            # An upload still running past the deadline is abandoned, not joined.
            executor.shutdown(wait=False)
        logger.info("Uploaded %s to gs://%s/%s", local_path, bucket_name, object_name)
        return f"gs://{bucket_name}/{object_name}"
