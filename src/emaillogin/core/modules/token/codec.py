"""Bearer credential encoding: <version>.<session id>.<base64url secret>."""

import binascii
import re

from pydantic import BaseModel

from emaillogin.errors import ValidationError
from emaillogin.utils import base64url, bytes_from_base64url

TOKEN_VERSION = 1
_BASE64URL_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_VERSION_RE = re.compile(r"^[0-9]+$")


class BearerToken(BaseModel):
    version: int
    session_id: str
    secret: bytes


def encode_token(session_id: str, secret: bytes, version: int = TOKEN_VERSION) -> str:
    return f"{version}.{session_id}.{base64url(secret)}"


def decode_token(token: str) -> BearerToken:
    """Split a bearer token into its version, session id and raw secret.

    Raises:
        ValidationError: If the token is malformed
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise ValidationError("Malformed token")
    version, session_id, secret = parts
    if not _VERSION_RE.fullmatch(version) or not _BASE64URL_RE.fullmatch(session_id) or not _BASE64URL_RE.fullmatch(secret):
        raise ValidationError("Malformed token")
    try:
        raw_secret = bytes_from_base64url(secret)
    except (ValueError, binascii.Error) as e:
        raise ValidationError("Malformed token") from e
    return BearerToken(version=int(version), session_id=session_id, secret=raw_secret)
