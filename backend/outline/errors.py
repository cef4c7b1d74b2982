from __future__ import annotations
from typing import Dict, List, Mapping, Any


class OutlineError(Exception):
    """Base class for errors surfaced by outline mutations and reorders."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OutlineError):
    """Malformed mutation input. Nothing was sent or cached."""

    def __init__(self, message: str, detail: Mapping[str, Any] | None = None):
        super().__init__(message)
        self.detail: Dict[str, List[str]] = _normalize_detail(detail or {})


class NotFoundError(OutlineError):
    """The targeted id no longer exists server-side."""


class ReorderConflictError(OutlineError):
    """A reorder was rejected; displayed order was rolled back."""


class TransportError(OutlineError):
    """The backend could not be reached or failed mid-request."""


def _normalize_detail(detail: Mapping[str, Any]) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = {}
    for field, msgs in detail.items():
        if isinstance(msgs, (list, tuple)):
            out[str(field)] = [str(m) for m in msgs]
        else:
            out[str(field)] = [str(msgs)]
    return out
