import base64
import time
from collections.abc import Callable
from typing import TypeAlias

# Milliseconds since epoch.
Clock: TypeAlias = Callable[[], int]


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def base64url(data: bytes | str) -> str:
    """Encode to URL-safe base64 without padding."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def bytes_from_base64url(value: str) -> bytes:
    """Decode URL-safe base64, with or without padding.

    Raises:
        ValueError: If the value is not valid base64url
    """
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("ascii"))
