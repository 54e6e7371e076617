"""Core constants for the call assistant service and its clients.

The speech endpoint expects LINEAR16 audio at 16kHz; the recognizer is
configured for German callers.
"""

# Server defaults
DEFAULT_HOST: str = "localhost"
DEFAULT_PORT: int = 8080
SPEECH_PATH: str = "/api/speech"
GENERATE_PATH: str = "/api/generate-response"
USERNAME_PARAM: str = "Username"

# Recognition config
SAMPLE_RATE: int = 16000  # Hz, LINEAR16
LANGUAGE_CODE: str = "de-DE"

# Streaming client demo: one placeholder chunk per tick, then hang up
DEMO_CHUNK: bytes = bytes([0, 1, 2, 3, 4])
DEMO_CHUNK_LIMIT: int = 5
DEMO_INTERVAL_S: float = 1.0
DEMO_CLOSE_DELAY_S: float = 1.0
DEMO_USERNAME: str = "test_user"

# Response generation
OPENAI_URL: str = "https://api.openai.com/v1/chat/completions"
OPENAI_MODEL: str = "gpt-4o"
OPENAI_TEMPERATURE: float = 0.7

# Websocket close code for a rejected handshake (missing Username)
POLICY_VIOLATION: int = 1008
