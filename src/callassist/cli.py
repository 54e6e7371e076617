"""Command-line entry point.

Usage:
    python -m callassist serve --port 8080 --recognizer google
    python -m callassist stream --username test_user
    python -m callassist generate --username test_user --service internet

Environment variables:
    OPENAI_API_KEY                  - Required for reply generation
    GOOGLE_APPLICATION_CREDENTIALS  - Required by the google recognizer
    CALLASSIST_HOST, CALLASSIST_PORT - Defaults for --host/--port
"""

import argparse
import asyncio
import logging
import sys

from callassist.config import load_settings, warn_missing
from callassist.constants import DEMO_CHUNK_LIMIT, DEMO_INTERVAL_S, DEMO_USERNAME

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    settings = load_settings()

    ap = argparse.ArgumentParser(
        prog="callassist",
        description="Call assistant server and demo clients",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = ap.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP/WebSocket server")
    serve.add_argument("--host", default="0.0.0.0", help="Interface to bind")
    serve.add_argument("--port", type=int, default=settings.port, help="Port to listen on")
    serve.add_argument(
        "--recognizer",
        choices=["google", "fake"],
        default="google",
        help="Speech recognizer backend",
    )

    stream = sub.add_parser("stream", help="Run the streaming speech client demo")
    generate = sub.add_parser("generate", help="Call the reply generation endpoint")
    for p in (stream, generate):
        p.add_argument("--host", default=settings.host, help="Server host")
        p.add_argument("--port", type=int, default=settings.port, help="Server port")
        p.add_argument("--username", default=DEMO_USERNAME, help="Username to identify as")

    stream.add_argument(
        "--chunks", type=int, default=DEMO_CHUNK_LIMIT, help="Number of chunks to send"
    )
    stream.add_argument(
        "--interval", type=float, default=DEMO_INTERVAL_S, help="Seconds between chunks"
    )

    generate.add_argument("--service", default="internet", help="Service context")
    generate.add_argument("--issue", default="connection problem", help="Issue context")
    return ap


def serve(args: argparse.Namespace) -> int:
    import uvicorn

    from callassist.responder import OpenAIResponder
    from callassist.server import create_app

    settings = load_settings()
    warn_missing(settings, recognizer=args.recognizer)

    if args.recognizer == "google":
        from callassist.recognizer.google import GoogleRecognizer

        recognizer = GoogleRecognizer()
    else:
        from callassist.recognizer.fake import FakeRecognizer

        recognizer = FakeRecognizer()

    app = create_app(recognizer, OpenAIResponder(settings.openai_api_key))
    logger.info("Server starting on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def stream(args: argparse.Namespace) -> int:
    from callassist.client.streaming import stream_demo

    logger.info("Starting WebSocket client demo...")
    try:
        result = asyncio.run(
            stream_demo(
                args.username,
                args.host,
                args.port,
                chunk_limit=args.chunks,
                interval=args.interval,
            )
        )
    except ValueError as e:
        logger.error("%s", e)
        return 2
    return 0 if result.ok else 1


def generate(args: argparse.Namespace) -> int:
    from callassist.client.generate import run_generate_response

    context = {"service": args.service, "issue": args.issue}
    data = asyncio.run(
        run_generate_response(args.username, context, args.host, args.port)
    )
    return 0 if data is not None else 1


COMMANDS = {"serve": serve, "stream": stream, "generate": generate}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
