"""QR code rendering of the otpauth:// provisioning URI."""

from __future__ import annotations

import base64
import io

import qrcode

from totpguard.totp import Totp


def qr_png_base64(totp: Totp, name: str, issuer: str) -> str:
    """
    Render the provisioning URI as a Base64-encoded PNG.

    Frontends can display it directly with <img src="data:image/png;base64,{result}">.
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(totp.uri(name, issuer))
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("utf-8")
