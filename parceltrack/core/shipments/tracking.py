# parceltrack/core/shipments/tracking.py
"""
Tracking number generation.

Format: PREFIX-YYYYMMDD-SUFFIX, e.g. PKG-20240315-7QX2MA.
"""

from __future__ import annotations

import random
import re
import secrets
import string
from datetime import datetime, timezone
from typing import Callable, Optional

TRACKING_ALPHABET = string.ascii_uppercase + string.digits
TRACKING_NUMBER_PATTERN = re.compile(r"^[A-Z0-9-]+$")


class TrackingNumberGenerator:
    """
    Produces tracking number candidates.
    Uniqueness is enforced by the caller against the store.
    """

    def __init__(
        self,
        prefix: str = "PKG",
        suffix_length: int = 6,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Args:
            prefix: Leading segment, upper case
            suffix_length: Number of random A-Z0-9 characters
            rng: Random source (secrets.SystemRandom by default)
            clock: Returns the current time (UTC by default)
        """
        self.prefix = prefix.upper()
        self.suffix_length = suffix_length
        self._rng = rng or secrets.SystemRandom()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def generate(self) -> str:
        """Returns a fresh candidate."""
        date_part = self._clock().strftime("%Y%m%d")
        suffix = "".join(self._rng.choice(TRACKING_ALPHABET) for _ in range(self.suffix_length))
        return f"{self.prefix}-{date_part}-{suffix}"


def normalize_tracking_number(value: str) -> str:
    """Tracking numbers are matched case-insensitively."""
    return value.strip().upper()


def is_valid_tracking_number(value: str) -> bool:
    return bool(TRACKING_NUMBER_PATTERN.match(value))
