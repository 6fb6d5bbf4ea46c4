"""
Command-line entry point: stream one answer to stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from dataclasses import dataclass
from typing import Any, TextIO

import structlog
import yaml

from astra.client import Completed, StreamClient, StreamQuery
from astra.config import Configuration
from astra.logging_utils import configure_logging, operation_context
from astra.transcript import StreamingTranscript, TranscriptUpdate

logger = structlog.get_logger(__name__)


class TerminalView:
    """Transcript listener that writes each delta as it arrives."""

    def __init__(self, stream: TextIO):
        self.stream = stream

    def __call__(self, update: TranscriptUpdate) -> None:
        if update.delta:
            self.stream.write(update.delta)
            self.stream.flush()


@dataclass(frozen=True)
class Settings:
    """Everything the CLI needs from configuration, validated up front."""
    client_config: dict[str, Any]
    api_key: str
    source_labels: dict[str, str] | None
    log_level: str
    log_format: str


def load_settings(config_path: str | None) -> Settings:
    """
    Load and validate configuration.

    Raises:
        OSError: If the config file cannot be read.
        yaml.YAMLError: If the config file is not valid YAML.
        ValueError: If a setting is missing or invalid.
    """
    config = Configuration(config_path)
    logging_config = config.get_logging_config()
    return Settings(
        client_config=config.get_client_config(),
        api_key=config.backend_api_key,
        source_labels=config.get_citation_config()["source_labels"],
        log_level=logging_config["level"],
        log_format=logging_config["format"],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="astra", description="Stream an answer from the Astra backend."
    )
    parser.add_argument("query", help="Question to ask")
    parser.add_argument(
        "--mode",
        choices=["search", "reason", "write"],
        default="search",
        help="Answer mode (default: search)",
    )
    parser.add_argument(
        "--clinical", action="store_true", help="Ask in clinical context"
    )
    parser.add_argument("--config", help="Path to a config.yaml")
    return parser


async def run(args: argparse.Namespace, settings: Settings) -> int:
    configure_logging(settings.log_level, settings.log_format)

    query = StreamQuery(
        query=args.query,
        is_clinical=args.clinical,
        is_reason=args.mode == "reason",
        is_write=args.mode == "write",
    )

    async with StreamClient(
        settings.client_config,
        settings.api_key,
        source_labels=settings.source_labels,
    ) as client:
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGINT, client.cancel)

        transcript = StreamingTranscript()
        transcript.subscribe(TerminalView(sys.stdout))
        transcript.enable()

        async with operation_context("stream answer", context={"mode": query.mode.value}):
            outcome = await client.stream_answer(query, transcript.append)

        transcript.finish()

    sys.stdout.write("\n")

    if outcome is None:
        logger.info("Answer cancelled")
        return 130
    if isinstance(outcome, Completed):
        for citation in outcome.citations:
            sys.stdout.write(f"[{citation.number}] {citation.title} - {citation.url}\n")
        return 0

    sys.stderr.write(f"Error: {outcome.cause}\n")
    return 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.config)
    except (OSError, yaml.YAMLError, ValueError) as e:
        sys.stderr.write(f"Configuration error: {e}\n")
        return 2
    return asyncio.run(run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
