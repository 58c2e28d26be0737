"""Deterministic payload fingerprints used for change detection."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json(payload: Any) -> str:
    """Serialise ``payload`` with sorted keys and no insignificant whitespace."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def fingerprint(payload: Any) -> str:
    """SHA-256 hex digest of the canonical JSON form of ``payload``.

    Two payloads that differ only in dict key order share a fingerprint.
    """
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
