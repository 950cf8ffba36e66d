"""Deterministic proc resolution.

A session is reproducible from its saved configuration: the seed string is
hashed into a NumPy generator seed. Every slot owns a generator seeded from
the same string, so a slot rolls the same procs for the same actions wherever
it sits, and edits in one slot never move another slot's procs.
"""

import hashlib
from enum import Enum

import numpy as np


class ProcMode(Enum):
    """How proc checks are resolved.

    Attributes:
        RNG: Seeded draw against the proc probability
        NEVER: Every proc check fails
        ALWAYS: Every proc check succeeds
    """

    RNG = "RNG"
    NEVER = "Never"
    ALWAYS = "Always"

    @classmethod
    def parse(cls, value) -> "ProcMode":
        if isinstance(value, ProcMode):
            return value
        text = str(value).strip().lower()
        for mode in cls:
            if text in (mode.value.lower(), mode.name.lower()):
                return mode
        raise ValueError(f"unknown proc mode: {value!r}")


def generate_seed() -> str:
    """Draw a fresh four digit seed for a configuration committed without one."""
    digits = np.random.default_rng().integers(0, 10, size=4)
    return "".join(str(int(digit)) for digit in digits)


def seed_to_int(seed: str) -> int:
    digest = hashlib.sha256(seed.encode("utf-8")).hexdigest()
    return int(digest[:16], 16)


class DeterministicRng:
    """
    Seeded proc source.

    In RNG mode one draw is consumed for every check whatever its probability,
    so the stream position depends only on the sequence of checks.

    Attributes:
        seed: Seed token the stream was created from
        mode: Proc mode applied to every check
    """

    def __init__(self, seed: str, mode: ProcMode = ProcMode.RNG):
        self.seed = seed
        self.mode = mode
        self._generator = np.random.default_rng(seed_to_int(seed))
        self.draws = 0

    def roll(self, probability: float) -> bool:
        """Resolve one proc check.

        Args:
            probability: Chance of success in [0, 1]

        Returns:
            bool: Whether the proc fired
        """
        if self.mode == ProcMode.ALWAYS:
            return True
        if self.mode == ProcMode.NEVER:
            return False
        self.draws += 1
        return bool(self._generator.random() < probability)
