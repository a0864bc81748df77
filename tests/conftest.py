from __future__ import annotations

import pytest

from totpguard.totp import Totp

SECRET = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"


@pytest.fixture
def totp() -> Totp:
    return Totp(SECRET, scratch_codes=["12345678", "87654321"])
