"""
Time-based one-time codes (RFC 6238, HMAC-SHA1, 6 digits, 30 second step).

Only the current window and the one before it are accepted, so a client
clock running up to one step behind still works while codes from the
future are refused.
"""

import base64
import binascii
import hashlib
import hmac
import struct
from datetime import datetime, timezone
from typing import Optional, Union

from ..errors import InvalidSecretFormat

TIME_STEP_SECONDS = 30
CODE_DIGITS = 6

Timestamp = Union[datetime, float, int]


def decode_secret(encoded: str) -> bytes:
    """
    Decode an RFC 4648 base32 secret (uppercase alphabet, padding required).

    Raises:
        InvalidSecretFormat: On non-alphabet characters or bad padding.
    """
    cleaned = encoded.strip()
    if not cleaned:
        raise InvalidSecretFormat("One-time-code secret is empty")
    try:
        return base64.b32decode(cleaned, casefold=False)
    except (binascii.Error, ValueError) as exc:
        raise InvalidSecretFormat(f"Malformed one-time-code secret: {exc}")


def _seconds(now: Timestamp) -> int:
    if isinstance(now, datetime):
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return int(now.timestamp())
    return int(now)


def time_window(now: Timestamp) -> int:
    """Index of the 30 second window containing ``now``."""
    return _seconds(now) // TIME_STEP_SECONDS


def generate_code(secret: bytes, window: int) -> str:
    """HOTP value for a counter, zero-padded to six digits."""
    digest = hmac.new(secret, struct.pack(">Q", window), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    value = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
    return str(value % (10 ** CODE_DIGITS)).zfill(CODE_DIGITS)


def seconds_remaining(now: Timestamp) -> int:
    """Seconds until the code for ``now`` rolls over."""
    return TIME_STEP_SECONDS - (_seconds(now) % TIME_STEP_SECONDS)


class TimeWindowCodeValidator:
    """Stateless validator; safe to share between threads."""

    def __init__(self, backward_windows: int = 1):
        self.backward_windows = backward_windows

    def is_valid(
        self,
        candidate_code: str,
        shared_secret_bytes: bytes,
        now: Optional[Timestamp] = None,
    ) -> bool:
        if now is None:
            now = datetime.now(timezone.utc)
        candidate = (candidate_code or "").strip()
        if len(candidate) != CODE_DIGITS or not candidate.isdigit():
            return False

        window = time_window(now)
        matched = False
        # Compare against every window so timing does not depend on which one matched
        for step in range(self.backward_windows + 1):
            expected = generate_code(shared_secret_bytes, window - step)
            if hmac.compare_digest(candidate.encode("ascii"), expected.encode("ascii")):
                matched = True
        return matched
