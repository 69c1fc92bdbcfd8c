"""Cookie value signing helpers: HMAC-SHA256 with secret rotation.

Signed values have the form ``<value>.<b64url(hmac)>``. The first secret
signs; every configured secret is tried when verifying so secrets can be
rotated without invalidating cookies already issued.
"""

import base64
import binascii
from typing import Sequence

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac


class SignatureError(ValueError):
    """Raised when a signed value does not verify against any secret."""


def b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError) as e:
        raise ValueError("invalid base64 value") from e


def _mac(value: str, secret: str) -> hmac.HMAC:
    h = hmac.HMAC(secret.encode("utf-8"), hashes.SHA256())
    h.update(value.encode("utf-8"))
    return h


def sign(value: str, secret: str) -> str:
    """Return `value` with an appended signature."""
    return f"{value}.{b64url_encode(_mac(value, secret).finalize())}"


def unsign(signed: str, secrets: Sequence[str]) -> str:
    """Return the original value of `signed`, verifying it with `secrets`.

    Raises `SignatureError` when the value is malformed or no secret verifies.
    """
    value, sep, signature = signed.rpartition(".")
    if not sep:
        raise SignatureError("value is not signed")
    try:
        expected = b64url_decode(signature)
    except ValueError as e:
        raise SignatureError("malformed signature") from e

    for secret in secrets:
        try:
            _mac(value, secret).verify(expected)
        except InvalidSignature:
            continue
        return value
    raise SignatureError("signature mismatch")
