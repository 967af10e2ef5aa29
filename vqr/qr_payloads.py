"""
QR rendering for wallet deeplinks.

This module is intentionally thin.

All URI encoding rules live in:
    vqr/uri_scheme.py

Rendering knobs are fixed:
- error correction level M
- margin (quiet zone) of 1 module
- scale of 6 pixels per module

Output is a PNG data URL suitable for an <img src=...> attribute.
"""

from __future__ import annotations

import base64
import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M


QR_ERROR_CORRECTION = ERROR_CORRECT_M
QR_MARGIN = 1
QR_SCALE = 6


def render_qr_png(data: str) -> bytes:
    if not data:
        raise ValueError("QR data must be non-empty")

    qr = qrcode.QRCode(
        error_correction=QR_ERROR_CORRECTION,
        box_size=QR_SCALE,
        border=QR_MARGIN,
    )
    qr.add_data(data)
    qr.make(fit=True)

    buf = io.BytesIO()
    qr.make_image().save(buf)
    return buf.getvalue()


def render_qr_data_url(data: str) -> str:
    png = render_qr_png(data)
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")
