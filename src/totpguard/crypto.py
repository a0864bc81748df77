"""AES-256-GCM sealing for persisted credential state."""

from __future__ import annotations

import base64
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from totpguard.config import settings
from totpguard.totp import Totp

_NONCE_SIZE = 12  # 96-bit nonce for AES-GCM
_AAD = b"totpguard:credential:v1"


def _get_key() -> bytes:
    raw = settings.master_key
    if not raw:
        raise RuntimeError("TOTPGUARD_MASTER_KEY not set")
    key = base64.b64decode(raw)
    if len(key) != 32:
        raise ValueError("TOTPGUARD_MASTER_KEY must be 32 bytes (base64-encoded)")
    return key


def encrypt(plaintext: str, aad: bytes | None = None) -> str:
    """Encrypt a string. Returns base64(nonce + ciphertext)."""
    key = _get_key()
    nonce = os.urandom(_NONCE_SIZE)
    ct = AESGCM(key).encrypt(nonce, plaintext.encode(), aad)
    return base64.b64encode(nonce + ct).decode()


def decrypt(token: str, aad: bytes | None = None) -> str:
    """Decrypt a base64(nonce + ciphertext) token back to plaintext."""
    key = _get_key()
    raw = base64.b64decode(token)
    nonce, ct = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
    return AESGCM(key).decrypt(nonce, ct, aad).decode()


def seal(totp: Totp) -> str:
    """Encrypt the JSON form of a credential for storage."""
    return encrypt(totp.to_json(), _AAD)


def unseal(token: str) -> Totp:
    """Decrypt and validate a sealed credential."""
    return Totp.from_json(decrypt(token, _AAD))
