"""Unit tests for the Google recognizer with a stubbed SpeechClient."""

from types import SimpleNamespace

import pytest

speech = pytest.importorskip("google.cloud.speech")

from google.api_core.exceptions import ServiceUnavailable  # noqa: E402

from callassist.errors import RecognitionError  # noqa: E402
from callassist.recognizer.google import GoogleRecognizer  # noqa: E402
from callassist.recognizer.protocol import TranscriptResult  # noqa: E402


def response(*results):
    return SimpleNamespace(
        results=[
            SimpleNamespace(
                alternatives=[SimpleNamespace(transcript=text)] if text else [],
                is_final=final,
            )
            for text, final in results
        ]
    )


class StubSpeechClient:
    """Echoes one scripted response per request pulled from the iterator."""

    def __init__(self, scripted):
        self.scripted = list(scripted)
        self.config = None
        self.requests = []

    def streaming_recognize(self, config, requests):
        self.config = config

        def responses():
            for request in requests:
                self.requests.append(request)
                if not self.scripted:
                    return
                item = self.scripted.pop(0)
                if isinstance(item, Exception):
                    raise item
                yield item

        return responses()


class TestGoogleRecognizer:
    """Tests for GoogleRecognizer and its streams."""

    def test_streaming_config(self):
        """Streams should be LINEAR16, 16kHz, de-DE with interim results."""
        client = StubSpeechClient([])
        GoogleRecognizer(client=client).open_stream()

        config = client.config
        assert config.interim_results is True
        assert config.config.language_code == "de-DE"
        assert config.config.sample_rate_hertz == 16000
        assert (
            config.config.encoding
            == speech.RecognitionConfig.AudioEncoding.LINEAR16
        )

    def test_send_returns_results(self):
        """Each chunk should return the results of its response."""
        client = StubSpeechClient(
            [response(("Guten", False)), response(("Guten Tag", True), (None, False))]
        )
        stream = GoogleRecognizer(client=client).open_stream()

        assert stream.send(b"\x00\x01") == [TranscriptResult("Guten", False)]
        assert stream.send(b"\x02\x03") == [TranscriptResult("Guten Tag", True)]
        assert [r.audio_content for r in client.requests] == [b"\x00\x01", b"\x02\x03"]

    def test_exhausted_stream_returns_nothing(self):
        """After the response stream ends, sends return no results."""
        client = StubSpeechClient([response(("Hallo", True))])
        stream = GoogleRecognizer(client=client).open_stream()

        stream.send(b"\x00")
        assert stream.send(b"\x00") == []
        assert stream.send(b"\x00") == []

    def test_api_error_raises_recognition_error(self):
        """API errors should surface as RecognitionError."""
        client = StubSpeechClient([ServiceUnavailable("try later")])
        stream = GoogleRecognizer(client=client).open_stream()

        with pytest.raises(RecognitionError):
            stream.send(b"\x00")
        stream.close()
