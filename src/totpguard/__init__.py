"""totpguard: TOTP second factor with scratch codes and replay protection."""

from totpguard.errors import CodeUsed, InvalidCode, TimeError, VerifyError, VerifyErrorKind
from totpguard.totp import Totp

__version__ = "0.1.0"

__all__ = [
    "CodeUsed",
    "InvalidCode",
    "TimeError",
    "Totp",
    "VerifyError",
    "VerifyErrorKind",
]
