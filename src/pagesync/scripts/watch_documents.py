"""CLI that lists a collection's documents and follows their processing status."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any, Sequence

import httpx

from pagesync.config import Settings
from pagesync.coordinator import ListEvents
from pagesync.errors import ErrorKind
from pagesync.http import KnowledgeBaseClient
from pagesync.lists import DOCUMENT_SORTS, default_query, document_key, document_list
from pagesync.observability import MetricsRecorder, configure_logging
from pagesync.statuses import is_quiet_status, status_of


class ConsoleEvents(ListEvents):
    def __init__(self, stream=None) -> None:
        self._stream = stream or sys.stdout
        self.failed = False
        self.settled = asyncio.Event()

    def on_reset(self, records: Sequence[Any], total: int, has_more: bool) -> None:
        self._print_rows("loaded", records, total, has_more)

    def on_append(self, records: Sequence[Any], total: int, has_more: bool) -> None:
        self._print_rows("appended", records, total, has_more)

    def on_refresh(self, records: Sequence[Any], total: int, has_more: bool) -> None:
        self._print_rows("refreshed", records, total, has_more)

    def on_error(self, kind: ErrorKind, message: str) -> None:
        self.failed = True
        print(f"error ({kind.value}): {message}", file=sys.stderr)

    def on_polling_change(self, polling: bool) -> None:
        if not polling:
            self.settled.set()

    def _print_rows(self, label: str, records: Sequence[Any], total: int, has_more: bool) -> None:
        print(f"-- {label}: {len(records)}/{total}{' (more)' if has_more else ''}", file=self._stream)
        for record in records:
            status = status_of(record) or "-"
            marker = "~" if is_quiet_status(status) else " "
            name = record.get("name") or record.get("title") or ""
            print(f"{marker} {document_key(record):<36} {status:<12} {name}", file=self._stream)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="List a collection's documents and watch processing progress")
    parser.add_argument("collection_id", help="Collection identifier")
    parser.add_argument("--keywords", default="", help="Search keywords")
    parser.add_argument("--sort", choices=DOCUMENT_SORTS, default=None, help="Sort order")
    parser.add_argument("--pages", type=int, default=1, help="Number of pages to load (default: 1)")
    parser.add_argument("--once", action="store_true", help="Do not wait for processing documents to settle")
    return parser


async def run(
    args: argparse.Namespace,
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    stream=None,
) -> int:
    events = ConsoleEvents(stream)
    metrics = MetricsRecorder.from_settings(settings)
    async with KnowledgeBaseClient.from_settings(settings, transport=transport) as client:
        coordinator = document_list(client, args.collection_id, settings, events=events, metrics=metrics)
        try:
            await coordinator.reset(default_query(settings, keywords=args.keywords, sort=args.sort))
            for _ in range(max(0, args.pages - 1)):
                if not coordinator.has_more:
                    break
                await coordinator.load_more()
            if not args.once and coordinator.watcher.polling:
                await events.settled.wait()
        finally:
            await coordinator.dispose()
    return 1 if events.failed else 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.pages < 1:  # pragma: no cover - CLI validation
        parser.error("--pages must be at least 1")
        return 1

    configure_logging()
    settings = Settings.from_env()
    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:  # pragma: no cover - interactive exit
        return 130


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
