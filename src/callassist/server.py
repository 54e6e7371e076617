"""FastAPI server for streaming speech-to-text and reply generation.

The server depends only on the Recognizer protocol and a responder object,
so tests can run it with the fake recognizer and a stub responder.
"""

import asyncio
import logging

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from callassist.constants import (
    GENERATE_PATH,
    LANGUAGE_CODE,
    POLICY_VIOLATION,
    SAMPLE_RATE,
    SPEECH_PATH,
    USERNAME_PARAM,
)
from callassist.conversations import ConversationStore
from callassist.errors import OpenAIError, RecognitionError
from callassist.recognizer.protocol import (
    RecognitionStream,
    Recognizer,
    TranscriptResult,
)
from callassist.responder import OpenAIResponder

logger = logging.getLogger(__name__)


class GenerateRequest(BaseModel):
    """Body of a reply generation request."""

    username: str
    context: dict[str, str] = Field(default_factory=dict)


class TranscriptionSession:
    """Recognition state for a single websocket connection."""

    def __init__(self, username: str, stream: RecognitionStream):
        """Initialize a transcription session.

        Args:
            username: User the transcripts belong to.
            stream: Recognition stream dedicated to this connection.
        """
        self.username = username
        self._stream = stream
        self.final_transcript = ""
        self.chunks_received = 0

    async def feed(self, audio: bytes) -> list[TranscriptResult]:
        """Send one chunk to the recognizer and return its results.

        Recognizer failures are logged and yield no results.
        """
        self.chunks_received += 1
        loop = asyncio.get_event_loop()
        try:
            results = await loop.run_in_executor(None, self._stream.send, audio)
        except RecognitionError as e:
            logger.error("Failed to recognize audio for %s: %s", self.username, e)
            return []

        for result in results:
            if result.is_final:
                self.final_transcript = result.transcript
        return results

    def close(self) -> None:
        self._stream.close()


def create_app(
    recognizer: Recognizer,
    responder: OpenAIResponder,
    store: ConversationStore | None = None,
) -> FastAPI:
    """Create a FastAPI application with the given backends.

    Args:
        recognizer: Speech recognizer implementation (real or fake).
        responder: Reply generator exposing ``async generate(context, history)``.
        store: Conversation store, or None for a fresh in-memory store.

    Returns:
        Configured FastAPI application. The store is exposed as
        ``app.state.store``.
    """
    if store is None:
        store = ConversationStore()

    app = FastAPI(title="Call Assistant Service")
    app.state.store = store
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", USERNAME_PARAM, "Authorization"],
        allow_credentials=True,
    )

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": "callassist",
            "language_code": LANGUAGE_CODE,
            "sample_rate": SAMPLE_RATE,
        }

    @app.websocket(SPEECH_PATH)
    async def speech_to_text(websocket: WebSocket):
        """WebSocket endpoint for streaming speech recognition.

        Protocol:
        - Client connects with ``?Username=<name>``
        - Client sends binary LINEAR16 audio chunks; text frames are ignored
        - Server responds with JSON: {"transcript": "...", "final": bool}
        - On disconnect the last final transcript is stored for the user
        """
        username = websocket.query_params.get(USERNAME_PARAM, "")
        if not username:
            logger.error("Username query parameter is missing (%s)", websocket.client)
            await websocket.close(
                code=POLICY_VIOLATION,
                reason="Username query parameter is required",
            )
            return

        await websocket.accept()
        logger.info("Speech-to-text session started for %s", username)
        session = TranscriptionSession(username, recognizer.open_stream())

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break

                data = message.get("bytes")
                if data is None:
                    continue

                for result in await session.feed(data):
                    await websocket.send_json(result.to_message())

        except WebSocketDisconnect:
            pass
        finally:
            session.close()
            _store_final_transcript(session, store)

    @app.post(GENERATE_PATH)
    async def generate_response(body: GenerateRequest):
        """Suggest replies for the user's latest transcribed question."""
        logger.info(
            "Reply generation requested for %s (context=%s)",
            body.username,
            body.context,
        )

        history = store.get(body.username)
        if not history:
            logger.error("No conversations found for %s", body.username)
            raise HTTPException(
                status_code=404, detail="No conversations found for this user"
            )

        try:
            result = await responder.generate(body.context, history)
        except OpenAIError as e:
            logger.error("OpenAI API call failed for %s: %s", body.username, e)
            raise HTTPException(
                status_code=500, detail=f"Error calling OpenAI API: {e}"
            )

        logger.info("Replies generated for %s", body.username)
        return result

    return app


def _store_final_transcript(
    session: TranscriptionSession, store: ConversationStore
) -> None:
    """Record the session's last final transcript as a new question."""
    logger.info(
        "Speech-to-text session closed for %s (%d chunks)",
        session.username,
        session.chunks_received,
    )
    if session.final_transcript:
        logger.info(
            "Final transcript for %s: %s", session.username, session.final_transcript
        )
        store.add_question(session.username, session.final_transcript)
    else:
        logger.warning("No final transcript for %s", session.username)
