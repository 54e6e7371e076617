"""Google Cloud Speech streaming recognizer.

This module requires google-cloud-speech and valid application default
credentials (GOOGLE_APPLICATION_CREDENTIALS). Import it only when the Google
backend is selected.
"""

import logging
import queue
from collections.abc import Iterator

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import speech

from callassist.constants import LANGUAGE_CODE, SAMPLE_RATE
from callassist.errors import RecognitionError
from callassist.recognizer.protocol import TranscriptResult

logger = logging.getLogger(__name__)


class GoogleRecognitionStream:
    """One bidirectional StreamingRecognize call.

    Audio is handed to the gRPC request iterator through a queue. Each
    ``send`` waits for the next response, so results are read in lockstep
    with the audio that produced them.
    """

    def __init__(
        self,
        client: speech.SpeechClient,
        streaming_config: speech.StreamingRecognitionConfig,
    ):
        self._requests: queue.Queue[bytes | None] = queue.Queue()
        self._responses = client.streaming_recognize(
            config=streaming_config, requests=self._request_iter()
        )
        self._exhausted = False

    def _request_iter(self) -> Iterator[speech.StreamingRecognizeRequest]:
        while True:
            chunk = self._requests.get()
            if chunk is None:
                return
            yield speech.StreamingRecognizeRequest(audio_content=chunk)

    def send(self, audio: bytes) -> list[TranscriptResult]:
        if self._exhausted:
            return []
        self._requests.put(audio)
        try:
            response = next(self._responses)
        except StopIteration:
            self._exhausted = True
            return []
        except GoogleAPICallError as e:
            raise RecognitionError(f"Google Speech error: {e}") from e

        return [
            TranscriptResult(result.alternatives[0].transcript, result.is_final)
            for result in response.results
            if result.alternatives
        ]

    def close(self) -> None:
        self._requests.put(None)


class GoogleRecognizer:
    """Opens Google Cloud Speech streams configured for LINEAR16 German audio."""

    def __init__(
        self,
        language_code: str = LANGUAGE_CODE,
        sample_rate: int = SAMPLE_RATE,
        client: speech.SpeechClient | None = None,
    ):
        """Initialize the recognizer.

        Args:
            language_code: BCP-47 code of the spoken language.
            sample_rate: Sample rate of the incoming LINEAR16 audio.
            client: Preconfigured client, or None to create one from
                application default credentials.
        """
        self._client = client or speech.SpeechClient()
        self._streaming_config = speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=sample_rate,
                language_code=language_code,
            ),
            interim_results=True,
        )
        logger.info(
            "Google Speech recognizer ready (language=%s, sample_rate=%d)",
            language_code,
            sample_rate,
        )

    def open_stream(self) -> GoogleRecognitionStream:
        return GoogleRecognitionStream(self._client, self._streaming_config)
