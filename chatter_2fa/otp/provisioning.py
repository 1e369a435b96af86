"""
Provisioning payloads for authenticator apps.

The ``otpauth://`` URI is what a QR code encodes. Its layout matches what
the web client has always produced, so enrollment links stay bit-identical:

    otpauth://totp/{issuer}:{label}?secret=...&issuer=...&algorithm=SHA1&digits=6&period=30
"""

import base64
from io import BytesIO
from urllib.parse import quote

import qrcode

# Characters JavaScript's encodeURIComponent leaves unescaped (besides alphanumerics and "_.-~")
_URI_COMPONENT_SAFE = "!*'()"


def encode_uri_component(value: str) -> str:
    """Percent-encode ``value`` the way ``encodeURIComponent`` does."""
    return quote(value, safe=_URI_COMPONENT_SAFE)


def build_provisioning_uri(
    secret: str,
    account_label: str,
    issuer: str,
    digits: int = 6,
    period: int = 30,
) -> str:
    """Build the ``otpauth://totp/`` URI for a secret."""
    issuer_part = encode_uri_component(issuer)
    label_part = encode_uri_component(account_label)
    return (
        f"otpauth://totp/{issuer_part}:{label_part}"
        f"?secret={secret}&issuer={issuer_part}&algorithm=SHA1&digits={digits}&period={period}"
    )


def generate_qr_code_data_url(provisioning_uri: str) -> str:
    """Render the provisioning URI as a base64 PNG ``data:`` URL."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(provisioning_uri)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    buffer.seek(0)

    return "data:image/png;base64," + base64.b64encode(buffer.read()).decode("utf-8")
