"""Optimistic note mutations for a single board.

The transforms below operate on the cached notes payload
(``{"notes": [...], "nextCursor": ...}``) and always return a new dict.
"""

from __future__ import annotations

import secrets
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from gumsync.models.notes import Note, NoteUser
from gumsync.resources import DEFAULT_PAGE_SIZE, NOTES_URL, bootstrap_key, note_url, notes_key

if TYPE_CHECKING:
    from gumsync.client import SyncClient

DEFAULT_NOTE_COLOR = "#fef3c7"
TEMP_ID_PREFIX = "temp-"

_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_-"


def temp_note_id(size: int = 6) -> str:
    return TEMP_ID_PREFIX + "".join(secrets.choice(_ID_ALPHABET) for _ in range(size))


def prepend_note(page: Any, note: dict[str, Any]) -> Any:
    if page is None:
        return page
    return {**page, "notes": [note, *page.get("notes", [])]}


def replace_note(page: Any, note_id: str, note: dict[str, Any]) -> Any:
    """Swap the note ``note_id`` for ``note``, keeping fields the server omitted."""
    if page is None:
        return page
    notes = [{**n, **note} if n.get("id") == note_id else n for n in page.get("notes", [])]
    return {**page, "notes": notes}


def merge_note(page: Any, note_id: str, data: dict[str, Any]) -> Any:
    if page is None:
        return page
    notes = [{**n, **data} if n.get("id") == note_id else n for n in page.get("notes", [])]
    return {**page, "notes": notes}


def remove_note(page: Any, note_id: str) -> Any:
    if page is None:
        return page
    return {**page, "notes": [n for n in page.get("notes", []) if n.get("id") != note_id]}


class NoteMutations:
    """Create, update and archive notes on ``board_id`` with optimistic cache writes."""

    def __init__(self, client: SyncClient, board_id: str, *, take: int = DEFAULT_PAGE_SIZE) -> None:
        self._client = client
        self.board_id = board_id
        self.key = notes_key(board_id, take)

    async def create_note(
        self,
        content: str,
        *,
        temp_id: str | None = None,
        color: str = DEFAULT_NOTE_COLOR,
    ) -> dict[str, Any]:
        temp_id = temp_id or temp_note_id()
        now = datetime.now(UTC).isoformat()
        optimistic = Note(
            id=temp_id,
            content=content,
            color=color,
            done=False,
            created_at=now,
            updated_at=now,
            user=NoteUser(id="me"),
            board_id=self.board_id,
        ).model_dump(by_alias=True)

        async def send() -> dict[str, Any]:
            return await self._client.request(
                "POST", NOTES_URL, json_body={"boardId": self.board_id, "content": content}
            )

        try:
            return await self._client.mutate(
                self.key,
                lambda page: prepend_note(page, optimistic),
                send,
                on_success=lambda page, created: replace_note(page, temp_id, created),
                invalidate=(bootstrap_key(),),
            )
        finally:
            self._client.invalidate_matching("notes", self.board_id)

    async def update_note(self, note_id: str, data: dict[str, Any]) -> dict[str, Any]:
        async def send() -> dict[str, Any]:
            return await self._client.request("PATCH", note_url(note_id), json_body=data)

        try:
            return await self._client.mutate(
                self.key,
                lambda page: merge_note(page, note_id, data),
                send,
                on_success=lambda page, updated: replace_note(page, note_id, updated),
            )
        finally:
            self._client.invalidate_matching("notes", self.board_id)

    async def archive_note(self, note_id: str) -> dict[str, Any]:
        async def send() -> dict[str, Any]:
            return await self._client.request(
                "PATCH", note_url(note_id), json_body={"archived": True}
            )

        try:
            return await self._client.mutate(
                self.key,
                lambda page: remove_note(page, note_id),
                send,
                invalidate=(bootstrap_key(),),
            )
        finally:
            self._client.invalidate_matching("notes", self.board_id)
