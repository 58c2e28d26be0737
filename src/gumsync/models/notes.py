from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

_WIRE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class NoteUser(BaseModel):
    model_config = _WIRE_CONFIG

    id: str
    name: str | None = None
    email: str = ""


class Note(BaseModel):
    """Single note as listed by ``GET /api/boards/{id}/notes``."""

    model_config = _WIRE_CONFIG

    id: str
    content: str
    color: str
    done: bool = False
    created_at: str
    updated_at: str
    user: NoteUser | None = None
    board_id: str


class NotesPage(BaseModel):
    model_config = _WIRE_CONFIG

    notes: list[Note] = []
    next_cursor: str | None = None


class Board(BaseModel):
    model_config = _WIRE_CONFIG

    id: str
    name: str
    description: str | None = None
    created_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    is_public: bool = False


class BootstrapUser(BaseModel):
    model_config = _WIRE_CONFIG

    id: str
    name: str | None = None
    email: str
    is_admin: bool = False
    organization_id: str | None = None


class Bootstrap(BaseModel):
    """Payload of ``GET /api/bootstrap``: current user plus visible boards."""

    model_config = _WIRE_CONFIG

    user: BootstrapUser | None = None
    boards: list[Board] = []


class BoardsPage(BaseModel):
    """Payload of ``GET /api/boards``."""

    model_config = _WIRE_CONFIG

    boards: list[Board] = []


class OrganizationInvite(BaseModel):
    model_config = _WIRE_CONFIG

    id: str
    email: str
    status: str
    created_at: str


class InvitesPage(BaseModel):
    """Payload of ``GET /api/organization/invites``."""

    model_config = _WIRE_CONFIG

    invites: list[OrganizationInvite] = []
