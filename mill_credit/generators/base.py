"""Shared setup for sample data generators."""

from __future__ import annotations

import random
from abc import ABC

from faker import Faker


class BaseGenerator(ABC):
    """Owns the Faker instance and random source of a generator.

    Both are seeded together, so one seed reproduces a whole batch
    without touching the global ``random`` state.

    Parameters
    ----------
    seed : int | None
        Seed for reproducible output.
    locale : str
        Faker locale.
    """

    def __init__(self, seed: int | None = None, locale: str = "en_US") -> None:
        self.rng = random.Random(seed)
        self.fake = Faker(locale)
        if seed is not None:
            self.fake.seed_instance(seed)
