"""Errors reported by Totp.verify_code."""

from __future__ import annotations

from enum import StrEnum


class VerifyErrorKind(StrEnum):
    TIME = "time"
    INVALID_CODE = "invalid_code"
    CODE_USED = "code_used"


class VerifyError(Exception):
    """Base class for a rejected verification attempt.

    Two errors compare equal when they are of the same kind; the message and
    any wrapped clock fault are ignored.
    """

    kind: VerifyErrorKind

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VerifyError):
            return NotImplemented
        return self.kind == other.kind

    def __hash__(self) -> int:
        return hash(self.kind)


class TimeError(VerifyError):
    """The system clock could not be read or is before the Unix epoch."""

    kind = VerifyErrorKind.TIME

    def __init__(self, message: str = "system clock unavailable", cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class InvalidCode(VerifyError):
    """Code matched neither a scratch code nor a time-step code in the window."""

    kind = VerifyErrorKind.INVALID_CODE

    def __init__(self, message: str = "invalid code") -> None:
        super().__init__(message)


class CodeUsed(VerifyError):
    """A code was already accepted in the current time step."""

    kind = VerifyErrorKind.CODE_USED

    def __init__(self, message: str = "code already used in this time step") -> None:
        super().__init__(message)
