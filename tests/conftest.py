import time
from pathlib import Path
from unittest.mock import Mock

import pytest
from google.cloud import speech_v1p1beta1 as speech
from google.protobuf import duration_pb2
from pydub.exceptions import CouldntDecodeError

from lyricsdb import audio_processor
from lyricsdb.config import PipelineConfig


def probe_data(**tags):
    duration = tags.pop("duration", "324.832656")
    fmt = {"format_name": "mp3", "tags": tags}
    if duration is not None:
        fmt["duration"] = duration
    return {"format": fmt, "streams": [{"codec_type": "audio", "channels": 2}]}


FULL_TAGS = dict(
    artist="Phoebe Bridgers",
    album="Stranger In The Alps",
    title="Smoke Signals",
    track="1",
)


class FakeFfmpeg:
    """Stands in for pydub's ffmpeg/ffprobe calls."""

    def __init__(self):
        self.fail_on = set()
        self.delays = {}
        self.probes = {}
        self.exports = []

    def probe(self, path):
        return self.probes.get(Path(path).name, probe_data(**FULL_TAGS))

    def segment_class(self):
        ffmpeg = self

        class FakeAudioSegment:
            def __init__(self, source):
                self.source = source
                self.channels = None
                self.frame_rate = None

            @classmethod
            def from_file(cls, path):
                name = Path(path).name
                time.sleep(ffmpeg.delays.get(name, 0))
                if name in ffmpeg.fail_on:
                    raise CouldntDecodeError(f"Decoding failed for {name}")
                return cls(path)

            def set_channels(self, channels):
                self.channels = channels
                return self

            def set_frame_rate(self, frame_rate):
                self.frame_rate = frame_rate
                return self

            def export(self, out_f, format=None, bitrate=None):
                ffmpeg.exports.append(
                    {"out": out_f, "format": format, "bitrate": bitrate,
                     "channels": self.channels, "frame_rate": self.frame_rate}
                )
                handle = open(out_f, "wb+")
                handle.write(Path(self.source).read_bytes())
                handle.seek(0)
                return handle

        return FakeAudioSegment


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    ffmpeg = FakeFfmpeg()
    monkeypatch.setattr(audio_processor, "AudioSegment", ffmpeg.segment_class())
    monkeypatch.setattr(audio_processor, "mediainfo_json", ffmpeg.probe)
    return ffmpeg


@pytest.fixture
def audio_dir(tmp_path):
    d = tmp_path / "uploads"
    d.mkdir()
    for name in ("a.mp3", "b.mp3", "c.mp3"):
        (d / name).write_bytes(b"ID3" + name.encode())
    return d


class FakeBlob:
    def __init__(self, name):
        self.name = name
        self.data = None
        self.calls = []
        self.error = None
        self.delay = 0

    def upload_from_filename(self, filename, content_type=None, timeout=None, retry="default"):
        self.calls.append({"filename": filename, "content_type": content_type, "timeout": timeout, "retry": retry})
        time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        with open(filename, "rb") as f:
            self.data = f.read()


class FakeBucket:
    def __init__(self):
        self.blobs = {}
        self.error = None

    def blob(self, name):
        b = self.blobs.setdefault(name, FakeBlob(name))
        b.error = self.error
        return b


class FakeStorageClient:
    def __init__(self):
        self.buckets = {}

    def bucket(self, name):
        return self.buckets.setdefault(name, FakeBucket())


def recognition_response(*segments):
    """Build a response from ``(channel, end_seconds, [(text, confidence), ...])`` tuples."""
    results = []
    for channel, end, alternatives in segments:
        results.append(
            speech.SpeechRecognitionResult(
                alternatives=[
                    speech.SpeechRecognitionAlternative(transcript=text, confidence=confidence)
                    for text, confidence in alternatives
                ],
                channel_tag=channel,
                result_end_time=duration_pb2.Duration(seconds=int(end), nanos=int(round(end % 1 * 1e9))),
            )
        )
    return speech.LongRunningRecognizeResponse(results=results)


class FakeSpeechClient:
    def __init__(self, response=None, error=None):
        self.response = response if response is not None else recognition_response(
            (1, 1.5, [("hello there", 0.92), ("hello their", 0.41)]),
            (2, 3.0, [("general kenobi", 0.88)]),
        )
        self.error = error
        # Object names whose jobs fail with ``error`` when it is set here.
        self.fail_on = set()
        self.requests = []

    def long_running_recognize(self, config=None, audio=None):
        self.requests.append({"config": config, "audio": audio})
        op = Mock()
        if self.error is not None and (not self.fail_on or audio.uri.rsplit("/", 1)[-1] in self.fail_on):
            op.result.side_effect = self.error
        else:
            op.result.return_value = self.response
        return op


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(bucket_name="music-testing", data_root=tmp_path / "data")


@pytest.fixture
def storage_client():
    return FakeStorageClient()


@pytest.fixture
def speech_client():
    return FakeSpeechClient()
