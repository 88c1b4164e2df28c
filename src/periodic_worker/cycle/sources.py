"""Data sources a cycle fetches from."""

from __future__ import annotations

import random
from abc import ABC, abstractmethod


class DataFetcher(ABC):
    """Abstract base class for cycle data sources.

    Implementations are pickled into process workers, so they should hold
    only plain configuration, never open handles.
    """

    @abstractmethod
    def fetch(self) -> str:
        """Return one delimited payload of integer values."""
        pass


class RandomDataFetcher(DataFetcher):
    """Generate `size` random values in `1..max_value` joined by `delimiter`.

    With the default size the payload is roughly 12 MB of text, which makes
    the difference between inline and isolated execution easy to observe.
    """

    def __init__(
        self,
        *,
        size: int = 3_000_001,
        max_value: int = 1000,
        delimiter: str = "_",
        seed: int | None = None,
    ) -> None:
        if size <= 0:
            raise ValueError("size must be > 0")
        if max_value <= 0:
            raise ValueError("max_value must be > 0")
        self.size = size
        self.max_value = max_value
        self.delimiter = delimiter
        self.seed = seed

    def fetch(self) -> str:
        rng = random.Random(self.seed)
        upper = self.max_value
        return self.delimiter.join(str(rng.randint(1, upper)) for _ in range(self.size))


class StaticDataFetcher(DataFetcher):
    """Always return the same payload."""

    def __init__(self, payload: str) -> None:
        self.payload = payload

    def fetch(self) -> str:
        return self.payload
