"""Seeded random source for reproducible dice rolls.

The stream is SHA-256 in counter mode keyed by the seed string:

    block(n) = sha256(utf8(seed) + n.to_bytes(8, "big"))
    random() = (int.from_bytes(block(n)[:8], "big") >> 11) / 2**53

so a given seed yields the same sequence on every platform and interpreter.
"""

import hashlib
import uuid

_FLOAT_BITS = 53


def new_seed() -> str:
    """Generate a fresh seed for callers that did not supply one."""
    return str(uuid.uuid4())


class SeededRandom:
    """Deterministic pseudo-random stream keyed by an explicit seed."""

    def __init__(self, seed: str):
        """Initialize the stream.

        Args:
            seed: Seed string; identical seeds produce identical streams
        """
        self.seed = seed
        self._key = seed.encode("utf-8")
        self._counter = 0

    @property
    def draws(self) -> int:
        """Number of values consumed so far."""
        return self._counter

    def random(self) -> float:
        """Return the next float in [0, 1)."""
        block = hashlib.sha256(self._key + self._counter.to_bytes(8, "big")).digest()
        self._counter += 1
        return (int.from_bytes(block[:8], "big") >> (64 - _FLOAT_BITS)) / (1 << _FLOAT_BITS)

    def roll_die(self, sides: int) -> int:
        """Roll a single die with faces 1..sides."""
        if sides < 1:
            raise ValueError(f"A die needs at least one side, got {sides}")
        return int(self.random() * sides) + 1
