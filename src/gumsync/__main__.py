"""Watch a board from the command line: ``python -m gumsync <board-id>``.

Every change to the board's notes is logged as a structured event.
"""

from __future__ import annotations

import argparse
import asyncio

import structlog

from gumsync.client import open_sync_client
from gumsync.config import Settings
from gumsync.models.cache import CacheEntry

log = structlog.get_logger()


async def watch_board(board_id: str, duration: float | None, settings: Settings) -> None:
    async with open_sync_client(settings, setup_logging=True) as client:
        session = client.watch_notes(board_id)

        def on_entry(entry: CacheEntry) -> None:
            if entry.key != session.key:
                return
            notes = entry.data.get("notes", []) if isinstance(entry.data, dict) else []
            log.info(
                "board_updated",
                board_id=board_id,
                notes=len(notes),
                version=entry.version,
                optimistic=entry.optimistic,
            )

        unsubscribe = client.cache.subscribe(on_entry)
        try:
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)
        finally:
            unsubscribe()
            log.info("board_watch_finished", **session.stats())


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="gumsync", description=__doc__)
    parser.add_argument("board_id", help="board to watch, or 'all-notes'")
    parser.add_argument("--duration", type=float, default=None, help="stop after N seconds")
    args = parser.parse_args(argv)

    try:
        asyncio.run(watch_board(args.board_id, args.duration, Settings()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
