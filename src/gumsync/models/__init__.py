from __future__ import annotations

from gumsync.models.cache import CacheEntry, OptimisticPatch, ResourceKey, Transform
from gumsync.models.notes import (
    Board,
    BoardsPage,
    Bootstrap,
    BootstrapUser,
    InvitesPage,
    Note,
    NotesPage,
    NoteUser,
    OrganizationInvite,
)

__all__ = [
    # cache
    "ResourceKey",
    "CacheEntry",
    "OptimisticPatch",
    "Transform",
    # wire
    "Note",
    "NoteUser",
    "NotesPage",
    "Board",
    "BoardsPage",
    "Bootstrap",
    "BootstrapUser",
    "OrganizationInvite",
    "InvitesPage",
]
