from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"
    CORRUPT_STATE = "corrupt_state"


class OrganizerError(Exception):
    kind: ErrorKind = ErrorKind.VALIDATION


class ValidationError(OrganizerError, ValueError):
    kind = ErrorKind.VALIDATION


class NotFoundError(OrganizerError, KeyError):
    kind = ErrorKind.NOT_FOUND

    def __str__(self) -> str:
        # KeyError quotes its argument.
        return str(self.args[0]) if self.args else "not found"


class TransportError(OrganizerError):
    kind = ErrorKind.TRANSPORT


class CorruptStateError(OrganizerError):
    kind = ErrorKind.CORRUPT_STATE
