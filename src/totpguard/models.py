"""Pydantic model for the persisted credential state."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from totpguard.otp import BASE32_ALPHABET, MAX_WINDOW, SCRATCH_DIGITS, SECRET_LENGTH


class CredentialRecord(BaseModel):
    """Serializable form of a Totp. All five fields round-trip exactly."""

    model_config = ConfigDict(extra="forbid", strict=True)

    secret: str = Field(min_length=SECRET_LENGTH, max_length=SECRET_LENGTH)
    scratch_codes: list[str] = Field(default_factory=list)
    window: int = Field(default=1, ge=0, le=MAX_WINDOW)
    reusable: bool = False
    last_step: int = Field(default=0, ge=0)

    @field_validator("secret")
    @classmethod
    def _check_secret(cls, secret: str) -> str:
        if not set(secret) <= BASE32_ALPHABET:
            raise ValueError("Secret must be upper-case base32")
        return secret

    @field_validator("scratch_codes")
    @classmethod
    def _check_scratch_codes(cls, codes: list[str]) -> list[str]:
        for code in codes:
            if len(code) != SCRATCH_DIGITS or not (code.isascii() and code.isdigit()):
                raise ValueError(f"Scratch codes must be {SCRATCH_DIGITS} digits")
        if len(set(codes)) != len(codes):
            raise ValueError("Scratch codes must be unique")
        return codes
