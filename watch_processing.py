#!/usr/bin/env python3
"""Submit a source to the processing backend and follow its progress live.

Usage:
    python watch_processing.py --file report.pdf
    python watch_processing.py --url https://example.org/article
    python watch_processing.py --text "Notes to summarise" --endpoint http://host/process-pdf

Press Ctrl-C to cancel a running job.
"""
import argparse
import asyncio
import logging
import signal
import sys
import time
from pathlib import Path

from pydantic import ValidationError

from models.run_state import ProcessingState
from models.source import SourcePayload
from pipeline.session import ProcessingSession
from pipeline.stream_client import TransportError
from pipeline.timeline import format_message, format_progress, format_stage_indicator, summarize
from settings import Settings

logger = logging.getLogger("watch_processing")


class TimelinePrinter:
    """Prints each new timeline entry once; an in-place progress update is printed again."""

    def __init__(self, out=None):
        self.out = out or sys.stdout
        self._printed = 0
        self._last = None
        self._last_progress: int | None = None

    def __call__(self, state: ProcessingState) -> None:
        if state.started_at is None:
            return  # idle state after teardown
        messages = state.messages
        if len(messages) < self._printed:
            # a new run started
            self._printed, self._last = 0, None
        start = self._printed
        if start and messages[start - 1] is not self._last:
            start -= 1
        for message in messages[start:]:
            print(format_message(message), file=self.out)
        self._printed = len(messages)
        self._last = messages[-1] if messages else None

        if state.overall_progress != self._last_progress:
            self._last_progress = state.overall_progress
            print(format_progress(state), file=self.out)
            print(format_stage_indicator(state), file=self.out)


def build_source(args: argparse.Namespace) -> SourcePayload:
    if args.file is not None:
        return SourcePayload.from_path(Path(args.file))
    if args.url is not None:
        return SourcePayload.from_url(args.url)
    return SourcePayload.from_text(args.text)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--file", help="Path of a document to upload")
    group.add_argument("--url", help="Web page to ingest")
    group.add_argument("--text", help="Raw text to ingest")
    parser.add_argument("--endpoint", help="Override NBP_PROCESSING_ENDPOINT")
    return parser.parse_args(argv)


async def watch(settings: Settings, source: SourcePayload, printer: TimelinePrinter) -> int:
    session = ProcessingSession(settings, on_update=printer)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, session.cancel)
    except NotImplementedError:
        logger.debug("Signal handlers unsupported here; Ctrl-C will abort instead of cancel")

    try:
        state = await session.run(source)
    except TransportError as exc:
        print(f"Processing failed: {exc}", file=printer.out)
        return 1
    finally:
        await session.close()

    summary = summarize(state, source.display_name, time.time())
    if summary is not None:
        print(
            f"Processing summary: {summary.document_name} | {summary.status} | "
            f"{summary.total_seconds}s | {summary.message_count} messages",
            file=printer.out,
        )
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = Settings(**({"processing_endpoint": args.endpoint} if args.endpoint else {}))
    except ValidationError as exc:
        print(f"Invalid configuration:\n{exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        source = build_source(args)
    except (OSError, ValueError) as exc:
        logger.error("Cannot read source: %s", exc)
        return 2

    return asyncio.run(watch(settings, source, TimelinePrinter()))


if __name__ == "__main__":
    sys.exit(main())
