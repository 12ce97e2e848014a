import time

import pytest
from google.api_core import exceptions as gapi_exceptions
from google.auth.exceptions import DefaultCredentialsError

from lyricsdb import storage_service
from lyricsdb.config import PipelineConfig
from lyricsdb.errors import ConfigError, UploadError
from lyricsdb.storage_service import StorageUploader


@pytest.fixture
def wav_file(tmp_path):
    path = tmp_path / "processed" / "01 Smoke Signals.wav"
    path.parent.mkdir()
    path.write_bytes(b"RIFF....WAVE")
    return path


def test_upload_returns_gs_uri(config, storage_client, wav_file):
    uploader = StorageUploader(config, client=storage_client)

    uri = uploader.upload(str(wav_file))

    assert uri == "gs://music-testing/01 Smoke Signals.wav"
    blob = storage_client.bucket("music-testing").blobs["01 Smoke Signals.wav"]
    assert blob.data == b"RIFF....WAVE"
    assert blob.calls[0]["content_type"] == "audio/wav"
    assert blob.calls[0]["timeout"] == config.upload_timeout


def test_upload_to_explicit_bucket(config, storage_client, wav_file):
    uri = StorageUploader(config, client=storage_client).upload(str(wav_file), bucket_name="other")
    assert uri.startswith("gs://other/")


def test_upload_without_bucket(tmp_path, storage_client, wav_file):
    uploader = StorageUploader(PipelineConfig(data_root=tmp_path), client=storage_client)
    with pytest.raises(ConfigError):
        uploader.upload(str(wav_file))


@pytest.mark.parametrize(
    "error",
    [gapi_exceptions.Forbidden("no access"), TimeoutError("deadline exceeded"), ConnectionError("reset")],
)
def test_upload_failures_are_wrapped(config, storage_client, wav_file, error):
    storage_client.bucket("music-testing").error = error
    with pytest.raises(UploadError) as excinfo:
        StorageUploader(config, client=storage_client).upload(str(wav_file))
    assert excinfo.value.__cause__ is error


def test_upload_missing_file(config, storage_client, tmp_path):
    with pytest.raises(UploadError):
        StorageUploader(config, client=storage_client).upload(str(tmp_path / "gone.wav"))


def test_upload_is_sent_once_without_retry(config, storage_client, wav_file):
    StorageUploader(config, client=storage_client).upload(str(wav_file))

    blob = storage_client.bucket("music-testing").blobs["01 Smoke Signals.wav"]
    assert len(blob.calls) == 1
    assert blob.calls[0]["retry"] is None


def test_upload_deadline_covers_whole_upload(tmp_path, storage_client, wav_file):
    config = PipelineConfig(bucket_name="music-testing", data_root=tmp_path, upload_timeout=0.1)
    storage_client.bucket("music-testing").blob("01 Smoke Signals.wav").delay = 1.0

    start = time.monotonic()
    with pytest.raises(UploadError, match="did not finish within 0.1s"):
        StorageUploader(config, client=storage_client).upload(str(wav_file))
    assert time.monotonic() - start < 0.9


def test_upload_without_credentials(monkeypatch, config, wav_file):
    def no_credentials(*args, **kwargs):
        raise DefaultCredentialsError("Your default credentials were not found.")

    monkeypatch.setattr(storage_service.storage, "Client", no_credentials)

    with pytest.raises(UploadError) as excinfo:
        StorageUploader(config).upload(str(wav_file))
    assert isinstance(excinfo.value.__cause__, DefaultCredentialsError)
