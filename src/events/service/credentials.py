"""Registration credentials: the opaque payload behind an attendee's QR code.

A payload looks like ``cv1.<nonce>.<tag>``. The nonce is random and the tag is a keyed HMAC of the nonce,
so a payload carries no personal data, cannot be guessed, and can be rejected as forged without touching
the database. The registration it belongs to is found by looking the payload up.
"""

import base64
import binascii
import secrets
import typing as t
from io import BytesIO
from uuid import UUID

import qrcode
import structlog
import zxingcpp
from django.conf import settings
from django.utils.crypto import constant_time_compare, salted_hmac
from PIL import Image, UnidentifiedImageError

logger = structlog.get_logger(__name__)

PAYLOAD_VERSION = "cv1"
NONCE_BYTES = 16
HMAC_SALT = "convene.events.credential"


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def _tag(nonce: bytes) -> bytes:
    return salted_hmac(HMAC_SALT, nonce, algorithm="sha256").digest()[: settings.CREDENTIAL_TAG_BYTES]


def issue(registration_id: UUID | str) -> str:
    """Mint a fresh payload for a registration.

    Two calls never return the same payload; uniqueness is additionally enforced by the database.
    """
    nonce = secrets.token_bytes(NONCE_BYTES)
    payload = f"{PAYLOAD_VERSION}.{_b64encode(nonce)}.{_b64encode(_tag(nonce))}"
    logger.debug("credential_issued", registration_id=str(registration_id))
    return payload


def is_well_formed(payload: str) -> bool:
    """Check structure and tag. A False result means the payload was not minted by this deployment."""
    parts = payload.strip().split(".")
    if len(parts) != 3 or parts[0] != PAYLOAD_VERSION:
        return False
    try:
        nonce = _b64decode(parts[1])
        tag = _b64decode(parts[2])
    except (binascii.Error, ValueError):
        return False
    return len(nonce) == NONCE_BYTES and constant_time_compare(tag, _tag(nonce))


def render(payload: str) -> bytes:
    """Render a payload as a PNG QR code. Same payload, same bytes."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=settings.CREDENTIAL_QR_BOX_SIZE,
        border=settings.CREDENTIAL_QR_BORDER,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffered = BytesIO()
    img.save(buffered, "PNG")
    return buffered.getvalue()


class ScanDecoder(t.Protocol):
    """Turns a raster image into the QR payloads visible in it."""

    def read(self, image: Image.Image) -> list[str]:
        """Return the text of every QR code found, possibly empty."""
        ...


class ZXingDecoder:
    """Decoder backed by zxing-cpp."""

    def read(self, image: Image.Image) -> list[str]:
        """Return the text of every valid QR code in the image."""
        results = zxingcpp.read_barcodes(image.convert("L"), formats=zxingcpp.BarcodeFormat.QRCode)
        return [result.text for result in results if result.valid and result.text]


def get_decoder() -> ScanDecoder:
    """Default decoder used by ``decode``."""
    return ZXingDecoder()


def decode(image_bytes: bytes, decoder: ScanDecoder | None = None) -> str | None:
    """Extract the single payload shown in an image.

    Returns None when no code is detected, when the image cannot be read, or when the frame shows several
    different codes: an ambiguous frame must not resolve to the wrong attendee.
    """
    try:
        image = Image.open(BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError):
        logger.info("credential_decode_unreadable_image", size=len(image_bytes))
        return None

    texts = set((decoder or get_decoder()).read(image))
    if len(texts) != 1:
        if texts:
            logger.info("credential_decode_ambiguous_frame", codes=len(texts))
        return None
    return texts.pop().strip()
