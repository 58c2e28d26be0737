"""Resource keys and endpoint URLs of the Gumboard API."""

from __future__ import annotations

from gumsync.models.cache import ResourceKey

ALL_NOTES_BOARD = "all-notes"
DEFAULT_PAGE_SIZE = 50

NOTES_URL = "/api/notes"
BOARDS_URL = "/api/boards"
BOOTSTRAP_URL = "/api/bootstrap"
ORGANIZATION_INVITES_URL = "/api/organization/invites"


def notes_key(board_id: str, take: int = DEFAULT_PAGE_SIZE) -> ResourceKey:
    return ResourceKey.of("notes", board_id, take=take)


def notes_url(board_id: str, take: int = DEFAULT_PAGE_SIZE) -> str:
    # the "all-notes" pseudo board aggregates every board in the organization
    if board_id == ALL_NOTES_BOARD:
        return f"/api/boards/{ALL_NOTES_BOARD}/notes?take={take}"
    return f"/api/boards/{board_id}/notes?take={take}"


def note_url(note_id: str) -> str:
    return f"{NOTES_URL}/{note_id}"


def boards_key() -> ResourceKey:
    return ResourceKey.of("boards")


def bootstrap_key() -> ResourceKey:
    return ResourceKey.of("bootstrap")


def organization_invites_key() -> ResourceKey:
    return ResourceKey.of("organization", "invites")
