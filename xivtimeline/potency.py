"""
Potency resolution for resolved action nodes.

A node carries its potency inputs as captured at snapshot time: the base
potency, self modifiers, the names of the buffs and party buffs that were up,
its target count and falloff. ``PotencyResolver`` turns those into realized
values on demand, applying the global tincture multiplier, party buffs and
untargetable masking.

Party buffs that raise critical or direct hit rate are converted into an
expected damage multiplier from the character's own stats, which is why the
resolver needs the level and the two substats.
"""

import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Tuple

from xivtimeline.common import CommonResource, LEVEL_MODIFIERS

DIRECT_HIT_POWER = 1.25


@dataclass(frozen=True)
class PotencyModifier:
    """A multiplicative self modifier captured at snapshot time."""

    name: str
    factor: float


@dataclass(frozen=True)
class Potency:
    """Potency inputs of one action, fixed at snapshot time.

    Attributes:
        base: Base potency against the primary target
        target_count: Number of targets hit
        falloff: Reduction applied to every target after the first, None for single target actions
        modifiers: Self modifiers (stance, job buffs) active at snapshot
        is_healing: Healing potency; never masked by untargetable windows
        is_limit_break: Limit break class action; bypasses all scaling
    """

    base: float
    target_count: int = 1
    falloff: Optional[float] = None
    modifiers: Tuple[PotencyModifier, ...] = ()
    is_healing: bool = False
    is_limit_break: bool = False

    @property
    def self_multiplier(self) -> float:
        multiplier = 1.0
        for modifier in self.modifiers:
            multiplier *= modifier.factor
        return multiplier


@dataclass(frozen=True)
class PartyBuff:
    """Effect of a party buff on every snapshot taken inside its window."""

    damage: float = 1.0
    critical_hit_rate: float = 0.0
    direct_hit_rate: float = 0.0


PARTY_BUFFS: Dict[str, PartyBuff] = {
    "Arcane Circle": PartyBuff(damage=1.03),
    "Battle Litany": PartyBuff(critical_hit_rate=0.10),
    "Battle Voice": PartyBuff(direct_hit_rate=0.20),
    "Brotherhood": PartyBuff(damage=1.05),
    "Chain Stratagem": PartyBuff(critical_hit_rate=0.10),
    "Devilment": PartyBuff(critical_hit_rate=0.20, direct_hit_rate=0.20),
    "Divination": PartyBuff(damage=1.06),
    "Dokumori": PartyBuff(damage=1.05),
    "Embolden": PartyBuff(damage=1.05),
    "Radiant Finale": PartyBuff(damage=1.06),
    "Searing Light": PartyBuff(damage=1.05),
    "Starry Muse": PartyBuff(damage=1.05),
    "Technical Finish": PartyBuff(damage=1.05),
}


class StatCalculator:
    """
    Expected damage effect of critical and direct hit rate bonuses.

    Attributes:
        level: Character level, selecting the substat constants
        critical_hit: Critical hit substat
        direct_hit: Direct hit substat
    """

    def __init__(self, level: int, critical_hit: float, direct_hit: float):
        self.level = level
        self.critical_hit = critical_hit
        self.direct_hit = direct_hit

    def critical_hit_chance(self) -> float:
        """Calculate critical hit chance from critical hit stat"""
        level_mod = LEVEL_MODIFIERS[self.level]
        tmp = 200.0 * (self.critical_hit - level_mod.substract) / level_mod.division
        crit_chance = (tmp + 50.0) / 1000.0
        return max(0.0, math.floor(crit_chance * 1000) / 1000.0)

    def critical_hit_power(self) -> float:
        """Calculate critical hit power multiplier from critical hit stat"""
        level_mod = LEVEL_MODIFIERS[self.level]
        tmp = 200.0 * (self.critical_hit - level_mod.substract) / level_mod.division
        crit_power = (1400.0 + tmp) / 1000.0
        return math.floor(crit_power * 1000) / 1000.0

    def direct_hit_chance(self) -> float:
        """Calculate direct hit chance from direct hit stat"""
        level_mod = LEVEL_MODIFIERS[self.level]
        tmp = 550.0 * (self.direct_hit - level_mod.substract) / level_mod.division
        return max(0.0, math.floor(tmp) / 1000.0)

    def expected_multiplier(self, critical_hit_bonus: float = 0.0, direct_hit_bonus: float = 0.0) -> float:
        """Expected damage relative to no bonus when crit/DH rates are raised by the bonuses."""
        crit_chance = self.critical_hit_chance()
        crit_power = self.critical_hit_power()
        dh_chance = self.direct_hit_chance()

        def expected(crit: float, dh: float) -> float:
            crit = min(crit, 1.0)
            dh = min(dh, 1.0)
            return (1 + crit * (crit_power - 1)) * (1 + dh * (DIRECT_HIT_POWER - 1))

        return expected(crit_chance + critical_hit_bonus, dh_chance + direct_hit_bonus) / expected(
            crit_chance, dh_chance
        )


@dataclass(frozen=True)
class PotencyResult:
    """Realized potency of one node.

    Attributes:
        theoretical: Primary potency with every multiplier, ignoring untargetable windows
        primary: Realized potency against the primary target
        splash: (potency, additional target count) pairs for the remaining targets
        is_healing: Whether the values are healing potency
        is_limit_break: Limit break class action, reported unscaled
        untargetable: The target was untargetable when the action landed
    """

    theoretical: float
    primary: float
    splash: Tuple[Tuple[float, int], ...] = ()
    is_healing: bool = False
    is_limit_break: bool = False
    untargetable: bool = False

    @property
    def total(self) -> float:
        return self.primary + sum(value * count for value, count in self.splash)


class PotencyResolver:
    """
    Computes realized potency for resolved action nodes.

    Attributes:
        tincture_multiplier: Multiplier applied to nodes that snapshotted a tincture
        untargetable: Callable answering whether the boss is untargetable at a time
        stats: Optional stat calculator converting rate buffs into damage
        include_party_buffs: Whether party buff markers contribute
    """

    def __init__(
        self,
        tincture_multiplier: float = 1.0,
        untargetable: Optional[Callable[[int], bool]] = None,
        stats: Optional[StatCalculator] = None,
        include_party_buffs: bool = True,
    ):
        self.tincture_multiplier = tincture_multiplier
        self.untargetable = untargetable
        self.stats = stats
        self.include_party_buffs = include_party_buffs

    def party_multiplier(self, party_buffs: Iterable[str]) -> float:
        if not self.include_party_buffs:
            return 1.0
        multiplier = 1.0
        critical_hit_bonus = 0.0
        direct_hit_bonus = 0.0
        for name in party_buffs:
            buff = PARTY_BUFFS.get(name)
            if buff is None:
                continue
            multiplier *= buff.damage
            critical_hit_bonus += buff.critical_hit_rate
            direct_hit_bonus += buff.direct_hit_rate
        if self.stats is not None and (critical_hit_bonus or direct_hit_bonus):
            multiplier *= self.stats.expected_multiplier(critical_hit_bonus, direct_hit_bonus)
        return multiplier

    def resolve(self, node) -> Optional[PotencyResult]:
        """
        Resolve the potency of one node.

        Args:
            node: A resolved ``ActionNode``

        Returns:
            PotencyResult, or None for nodes without potency (invalid,
            unresolved or potency-less actions)
        """
        potency: Optional[Potency] = node.potency
        if potency is None or not node.is_valid:
            return None

        masked = (
            not potency.is_healing
            and self.untargetable is not None
            and node.application_time is not None
            and self.untargetable(node.application_time)
        )

        if potency.is_limit_break:
            return PotencyResult(
                theoretical=potency.base,
                primary=0.0 if masked else potency.base,
                is_healing=potency.is_healing,
                is_limit_break=True,
                untargetable=masked,
            )

        multiplier = potency.self_multiplier * self.party_multiplier(node.party_buffs)
        if node.has_buff(CommonResource.TINCTURE.name):
            multiplier *= self.tincture_multiplier
        theoretical = potency.base * multiplier

        splash: Tuple[Tuple[float, int], ...] = ()
        if potency.target_count > 1 and potency.falloff is not None:
            splash_value = 0.0 if masked else theoretical * (1 - potency.falloff)
            splash = ((splash_value, potency.target_count - 1),)

        return PotencyResult(
            theoretical=theoretical,
            primary=0.0 if masked else theoretical,
            splash=splash,
            is_healing=potency.is_healing,
            untargetable=masked,
        )

    def total(self, nodes: Iterable) -> float:
        """Sum of realized potency (all targets) over ``nodes``."""
        result = 0.0
        for node in nodes:
            resolved = self.resolve(node)
            if resolved is not None:
                result += resolved.total
        return result
