"""Receipt display codes."""

from __future__ import annotations

import random

RECEIPT_PREFIX = "REC-"
RECEIPT_NUMBER_MIN = 1000
RECEIPT_NUMBER_MAX = 9999


def generate_receipt_number(rng: random.Random | None = None) -> str:
    """Return a display code such as ``REC-4821``.

    The code is not unique on its own; the store rejects duplicates and the
    caller draws again.
    """
    source = rng or random
    return f"{RECEIPT_PREFIX}{source.randint(RECEIPT_NUMBER_MIN, RECEIPT_NUMBER_MAX)}"
