"""Short random identifiers and bounded random integers."""

from __future__ import annotations

import random
import string
from typing import Optional

ID_ALPHABET = string.digits + string.ascii_lowercase
ID_LENGTH = 9


class IdGenerator:
    """Random source for group ids and batch shapes.

    Pass a seeded ``random.Random`` to make the output reproducible.
    Ids are best-effort unique; they are not meant to be secrets.
    """

    def __init__(self, rng: Optional[random.Random] = None, length: int = ID_LENGTH):
        self._rng = rng or random.Random()
        self._length = length

    def new_id(self) -> str:
        return "".join(self._rng.choice(ID_ALPHABET) for _ in range(self._length))

    def rand_int(self, lo: int, hi: int) -> int:
        """Uniform integer in ``[lo, hi]``, both ends included."""
        if lo > hi:
            raise ValueError(f"rand_int: lower bound {lo} is greater than upper bound {hi}")
        return self._rng.randint(lo, hi)


_default = IdGenerator()


def new_id() -> str:
    return _default.new_id()


def rand_int(lo: int, hi: int) -> int:
    return _default.rand_int(lo, hi)
