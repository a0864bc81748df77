"""One-time-password primitives built on pyotp.

Codes are RFC 6238 with a 30 second step and 6 digits, so an HOTP code at
counter ``step`` is the TOTP code for that step.
"""

from __future__ import annotations

import secrets
import time

import pyotp
from pyotp.utils import strings_equal

from totpguard.errors import TimeError

STEP_SECONDS = 30
CODE_DIGITS = 6
SCRATCH_DIGITS = 8
SECRET_LENGTH = 32
MAX_WINDOW = 65535
BASE32_ALPHABET = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ234567")

_SCRATCH_SPACE = 10**SCRATCH_DIGITS

# Wall clock, seconds since the Unix epoch.
clock = time.time


def generate_secret() -> str:
    """Generate a new TOTP secret (base32-encoded, 32 chars)."""
    return pyotp.random_base32()


def generate_scratch_codes(count: int) -> list[str]:
    """Generate ``count`` unique zero-padded 8-digit scratch codes."""
    if not isinstance(count, int) or isinstance(count, bool):
        raise TypeError(f"Scratch code count must be an int, got {type(count).__name__}")
    if count < 0:
        raise ValueError(f"Scratch code count must be non-negative, got {count}")
    if count > _SCRATCH_SPACE:
        raise ValueError(f"Cannot generate {count} unique {SCRATCH_DIGITS}-digit codes")
    codes: list[str] = []
    seen: set[str] = set()
    while len(codes) < count:
        code = f"{secrets.randbelow(_SCRATCH_SPACE):0{SCRATCH_DIGITS}d}"
        if code in seen:
            continue
        seen.add(code)
        codes.append(code)
    return codes


def current_step(now: float | None = None) -> int:
    """Return the 30 second step index for ``now`` (defaults to the system clock).

    Raises TimeError when the clock can't be read or lies before the epoch.
    """
    if now is None:
        try:
            now = clock()
        except OSError as e:
            raise TimeError("failed to read system clock", cause=e) from e
    if now < 0:
        raise TimeError(f"system time {now} is before the Unix epoch")
    return int(now // STEP_SECONDS)


def compute_code(secret: str, step: int) -> str:
    """Get the 6-digit code for ``secret`` at time step ``step``."""
    return pyotp.HOTP(secret, digits=CODE_DIGITS).at(step)


def verify_with_tolerance(secret: str, code: str, window: int, step: int) -> bool:
    """Check ``code`` against ``step`` and the ``window`` steps before it."""
    if len(code) != CODE_DIGITS or not (code.isascii() and code.isdigit()):
        return False
    hotp = pyotp.HOTP(secret, digits=CODE_DIGITS)
    oldest = max(step - window, 0)
    for candidate in range(step, oldest - 1, -1):
        if strings_equal(code, hotp.at(candidate)):
            return True
    return False
