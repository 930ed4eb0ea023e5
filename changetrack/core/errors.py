"""
Error taxonomy shared by the server, the HTTP layer and the board client.

Every error carries a `kind` (stable symbol used on the wire) and a
human-readable `message`.
"""
from __future__ import annotations
from typing import Dict, Type


class ChangeTrackError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(ChangeTrackError):
    """Malformed input: bad id shape, unknown status symbol, missing actor."""
    status_code = 400


class NotFound(ChangeTrackError):
    status_code = 404


class PolicyViolation(ChangeTrackError):
    """A transition refused by a lifecycle rule; message is the rule's reason."""
    status_code = 409


class StorageFailure(ChangeTrackError):
    """Backing store unavailable or the atomic write could not commit."""
    status_code = 503


ERROR_KINDS: Dict[str, Type[ChangeTrackError]] = {
    cls.__name__: cls for cls in (ValidationError, NotFound, PolicyViolation, StorageFailure)
}


def error_from_payload(payload: Dict[str, str]) -> ChangeTrackError:
    """Rebuild an error from its `{kind, message}` wire form."""
    cls = ERROR_KINDS.get(str(payload.get("kind", "")), StorageFailure)
    return cls(str(payload.get("message") or "unknown error"))


def kind_for_status(status_code: int) -> str:
    """Error kind for a plain HTTP failure (auth, routing) raised outside the taxonomy."""
    if status_code == 404:
        return NotFound.__name__
    if status_code == 409:
        return PolicyViolation.__name__
    if status_code >= 500:
        return StorageFailure.__name__
    return ValidationError.__name__
