"""Seedable xorshift32 sequence generator.

Every random draw made while rendering a stimulus file comes from one
:class:`XorShift32` instance, so a seed and a request fully determine the
bytes written.
"""

import time

_MASK32 = 0xFFFFFFFF
_ZERO_SEED_REPLACEMENT = 0x12345678
_TWO_POW_32 = 4294967296.0


def default_seed() -> int:
    """Return a 32-bit seed derived from the wall clock in milliseconds."""
    return int(time.time() * 1000) & _MASK32


class XorShift32:
    """Marsaglia xorshift generator over a single 32-bit word."""

    __slots__ = ("_state",)

    def __init__(self, seed: int) -> None:
        state = int(seed) & _MASK32
        # an all-zero state would only ever produce zeros
        self._state = state or _ZERO_SEED_REPLACEMENT

    @property
    def state(self) -> int:
        return self._state

    def next_uint(self) -> int:
        x = self._state
        x ^= (x << 13) & _MASK32
        x ^= x >> 17
        x ^= (x << 5) & _MASK32
        self._state = x
        return x

    def random(self) -> float:
        """Return a float in ``[0, 1)``."""
        return self.next_uint() / _TWO_POW_32

    def uniform(self, a: float, b: float) -> float:
        """Return a float in ``[a, b)``."""
        return a + (b - a) * self.random()

    def __repr__(self) -> str:
        return f"XorShift32(state=0x{self._state:08x})"


__all__ = ["XorShift32", "default_seed"]
