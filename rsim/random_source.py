"""Deterministic random streams for return and inflation shocks.

The generator is a 32-bit linear congruential generator seeded from an
FNV-1a hash, so the same seed string always replays the same path on any
platform. Independent streams are derived by hashing ``"<seed>:<name>"``.
"""

from __future__ import annotations

import math

_FNV_OFFSET = 2166136261
_FNV_PRIME = 16777619
_MASK_32 = 0xFFFFFFFF

_LCG_MULTIPLIER = 1664525
_LCG_INCREMENT = 1013904223
_LCG_MODULUS = 2**32


def hash_string_to_seed(value: str) -> int:
    state = _FNV_OFFSET
    for char in value:
        state ^= ord(char)
        state = (state * _FNV_PRIME) & _MASK_32
    return state


class SeededRandom:
    """Uniform and standard-normal draws from a reproducible LCG."""

    __slots__ = ("state",)

    def __init__(self, seed: int) -> None:
        self.state = int(seed) & _MASK_32

    def random(self) -> float:
        self.state = (self.state * _LCG_MULTIPLIER + _LCG_INCREMENT) % _LCG_MODULUS
        return self.state / _LCG_MODULUS

    def normal(self) -> float:
        u = 0.0
        v = 0.0
        while u == 0.0:
            u = self.random()
        while v == 0.0:
            v = self.random()
        return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)


def stream(seed: int, name: str) -> SeededRandom:
    return SeededRandom(hash_string_to_seed(f"{seed}:{name}"))


def trial_seed(base_seed: int, trial_index: int) -> int:
    if trial_index == 0:
        return base_seed
    return hash_string_to_seed(f"{base_seed}:trial:{trial_index}")


def shock_sequence(rng: SeededRandom, length: int, persistence: float = 0.0) -> list[float]:
    """AR(1) standard-normal shocks with unit stationary variance."""
    p = max(-0.99, min(0.99, persistence))
    scale = math.sqrt(1.0 - p * p)
    shocks: list[float] = []
    previous = 0.0
    for index in range(max(0, length)):
        draw = rng.normal()
        value = draw if index == 0 else p * previous + scale * draw
        shocks.append(value)
        previous = value
    return shocks
