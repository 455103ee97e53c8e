"""QR / capability helpers.

A certificate's QR code encodes its public verification URL,
``<base>/verify/<certificate_id>``.  The stored payload is only a cache
of ``encode_qr_data_url(verification_url(...))``; it can be rebuilt from
the certificate id at any time.
"""

from __future__ import annotations

import base64
import io
from urllib.parse import parse_qs, urlparse

import qrcode

DATA_URL_PREFIX = "data:image/png;base64,"


def verification_url(base_url: str, certificate_id: str) -> str:
    return f"{base_url.rstrip('/')}/verify/{certificate_id}"


def encode_qr_data_url(text: str) -> str:
    """Render ``text`` as a PNG QR code and return it as a data URL."""
    qr = qrcode.QRCode(box_size=10, border=2)
    qr.add_data(text)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return DATA_URL_PREFIX + base64.b64encode(buf.getvalue()).decode("ascii")


def build_qr_payload(base_url: str, certificate_id: str) -> str:
    return encode_qr_data_url(verification_url(base_url, certificate_id))


def extract_certificate_id(scanned: str) -> str:
    """Pull a candidate certificate id out of scanned QR text.

    Accepts a full verification URL (last path segment, or ``?id=``) or
    a bare identifier.  The result is not normalized or checked here;
    the verification gateway does that.
    """
    text = scanned.strip()
    if "://" not in text:
        return text

    parsed = urlparse(text)
    segments = [s for s in parsed.path.split("/") if s]
    if segments and segments[-1] != "verify":
        return segments[-1]
    ids = parse_qs(parsed.query).get("id")
    if ids:
        return ids[0].strip()
    return ""
