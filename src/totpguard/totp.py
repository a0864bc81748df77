"""Ready-to-use TOTP credential with scratch codes and replay protection.

A Totp holds one enrolled user's shared secret, the unused scratch codes, the
tolerance window, the reuse policy and the last accepted time step. Successful
verifications mutate it (a scratch code is consumed or the step is recorded),
so it must be saved after every successful attempt.

The load -> verify_code -> save sequence has to run under an exclusive lock per
user in whatever store holds the state. Without it an intercepted code can be
replayed by a concurrent attempt that loaded the state before the save.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from totpguard.errors import CodeUsed, InvalidCode, VerifyError
from totpguard.models import CredentialRecord
from totpguard.otp import (
    MAX_WINDOW,
    SCRATCH_DIGITS,
    current_step,
    generate_scratch_codes,
    generate_secret,
    verify_with_tolerance,
)

if TYPE_CHECKING:
    from totpguard.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_SCRATCH_COUNT = 8
DEFAULT_WINDOW = 1
DEFAULT_REUSABLE = False


class Totp:
    """TOTP credential state.

    Defaults: 8 scratch codes, a window of 1 previous step, code reuse
    forbidden. Hard-coded: 32-char secret, 30 second steps, 6-digit codes,
    8-digit scratch codes.
    """

    __slots__ = ("_secret", "_scratch", "_window", "_reusable", "_last_step")

    def __init__(
        self,
        secret: str,
        scratch_codes: list[str] | None = None,
        window: int = DEFAULT_WINDOW,
        reusable: bool = DEFAULT_REUSABLE,
        last_step: int = 0,
    ) -> None:
        record = CredentialRecord(
            secret=secret,
            scratch_codes=list(scratch_codes or []),
            window=window,
            reusable=reusable,
            last_step=last_step,
        )
        self._secret = record.secret
        self._scratch = record.scratch_codes
        self._window = record.window
        self._reusable = record.reusable
        self._last_step = record.last_step

    @classmethod
    def new(cls) -> Totp:
        """Create a credential with a fresh secret and 8 fresh scratch codes."""
        return cls(generate_secret()).with_scratch(DEFAULT_SCRATCH_COUNT)

    @classmethod
    def from_settings(cls, settings: Settings) -> Totp:
        """Create a fresh credential using configured defaults."""
        return (
            cls(generate_secret())
            .with_scratch(settings.scratch_count)
            .with_window(settings.window)
            .with_reusable(settings.reusable)
        )

    # --- Reconfiguration ---

    def with_scratch(self, count: int) -> Totp:
        """Replace all scratch codes with ``count`` fresh ones. 0 disables them."""
        self._scratch = generate_scratch_codes(count)
        return self

    def with_window(self, window: int) -> Totp:
        """Set how many previous 30 second steps are still accepted."""
        if not isinstance(window, int) or isinstance(window, bool):
            raise TypeError(f"Window must be an int, got {type(window).__name__}")
        if not 0 <= window <= MAX_WINDOW:
            raise ValueError(f"Window must be between 0 and {MAX_WINDOW}, got {window}")
        self._window = window
        return self

    def with_reusable(self, reusable: bool) -> Totp:
        """Allow or forbid accepting more than one code per time step."""
        self._reusable = bool(reusable)
        return self

    # --- Read-only views ---

    @property
    def secret(self) -> str:
        """Shared secret, for users who type it in instead of scanning."""
        return self._secret

    @property
    def scratch_codes(self) -> list[str]:
        return list(self._scratch)

    @property
    def window(self) -> int:
        return self._window

    @property
    def reusable(self) -> bool:
        return self._reusable

    @property
    def last_step(self) -> int:
        return self._last_step

    # --- Verification ---

    def verify(self, code: str, now: float | None = None) -> bool:
        """Wrap verify_code, collapsing every failure to False."""
        try:
            self.verify_code(code, now=now)
        except VerifyError:
            return False
        return True

    def verify_code(self, code: str, now: float | None = None) -> None:
        """Check ``code``; raise InvalidCode, CodeUsed or TimeError on failure.

        An 8-character code is treated as a scratch code and consumed on
        success. Anything else is checked as a time-step code; when reuse is
        forbidden the current step is recorded on success.
        """
        if len(code) == SCRATCH_DIGITS:
            self._consume_scratch(code)
            return

        step = current_step(now)
        if not self._reusable and self._last_step == step:
            logger.info("Rejected code: step %d already used", step)
            raise CodeUsed()

        if not verify_with_tolerance(self._secret, code, self._window, step):
            raise InvalidCode()

        if not self._reusable:
            self._last_step = step
        logger.debug("Accepted time-step code at step %d", step)

    def _consume_scratch(self, code: str) -> None:
        if not self._scratch:
            raise InvalidCode("no scratch codes available")
        try:
            self._scratch.remove(code)
        except ValueError:
            raise InvalidCode() from None
        logger.info("Scratch code consumed, %d remaining", len(self._scratch))

    # --- Provisioning ---

    def uri(self, name: str, issuer: str) -> str:
        """Build the otpauth:// URI for QR code enrollment.

        Values are interpolated as-is; ``name`` and ``issuer`` must not contain
        characters such as ``&`` or ``?``.
        """
        return f"otpauth://totp/{name}?secret={self._secret}&issuer={issuer}"

    # --- Persistence ---

    def to_record(self) -> CredentialRecord:
        return CredentialRecord(
            secret=self._secret,
            scratch_codes=list(self._scratch),
            window=self._window,
            reusable=self._reusable,
            last_step=self._last_step,
        )

    @classmethod
    def from_record(cls, record: CredentialRecord) -> Totp:
        return cls(
            record.secret,
            scratch_codes=record.scratch_codes,
            window=record.window,
            reusable=record.reusable,
            last_step=record.last_step,
        )

    def to_dict(self) -> dict[str, Any]:
        return self.to_record().model_dump()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Totp:
        return cls.from_record(CredentialRecord.model_validate(data))

    def to_json(self) -> str:
        return self.to_record().model_dump_json()

    @classmethod
    def from_json(cls, raw: str | bytes) -> Totp:
        return cls.from_record(CredentialRecord.model_validate_json(raw))

    def __repr__(self) -> str:
        return (
            f"Totp(scratch={len(self._scratch)}, window={self._window}, "
            f"reusable={self._reusable}, last_step={self._last_step})"
        )
