"""Base generator class for sample-data generators."""

from __future__ import annotations

import random
from abc import ABC
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal

from faker import Faker

CENTS = Decimal("0.01")


class BaseGenerator(ABC):
    """Base class for the ledger sample-data generators.

    Seeding reseeds both the Faker instance and the ``random`` module, so a
    generator built with the same seed replays the same clients, loans and
    payment histories.

    Parameters
    ----------
    seed : int | None
        Random seed for reproducibility.
    locale : str
        Faker locale (default ``pt_BR``).
    """

    def __init__(self, seed: int | None = None, locale: str = "pt_BR") -> None:
        self.fake = Faker(locale)
        if seed is not None:
            self.fake.seed_instance(seed)
            random.seed(seed)

    @staticmethod
    def money(value: Decimal) -> Decimal:
        """Round to centavos, half up."""
        return value.quantize(CENTS, rounding=ROUND_HALF_UP)

    @staticmethod
    def business_hours(day: date) -> datetime:
        """A timestamp on ``day`` between 08:00 and 18:59."""
        return datetime.combine(day, time(hour=random.randint(8, 18), minute=random.randint(0, 59)))
