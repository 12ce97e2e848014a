import pytest

from lyricsdb.models import Metadata, Transcript


def test_mark_transcribed_requires_processed():
    md = Metadata(title="Smoke Signals")
    with pytest.raises(ValueError):
        md.mark_transcribed()
    assert md.transcribed is False


def test_mark_transcribed():
    md = Metadata(title="Smoke Signals", processed=True)
    md.mark_transcribed()
    assert md.transcribed is True


def test_metadata_to_dict_keys():
    assert list(Metadata().to_dict()) == [
        "artist", "album", "title", "track", "duration", "filename", "processed", "transcribed",
    ]


def test_transcript_to_dict():
    t = Transcript(line=0, time=1.5, text="hi", channel_tag=1, alternate=0, confidence=0.9)
    assert t.to_dict() == {
        "line": 0, "time": 1.5, "text": "hi", "channel_tag": 1, "alternate": 0, "confidence": 0.9,
    }
