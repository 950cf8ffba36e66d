"""
Black Mage Job Module

This module plugs the Black Mage job into the timeline engine:
- Astral Fire / Umbral Ice stances and the Enochian state they imply
- Umbral Hearts, Astral Soul and Paradox
- Polyglot stacks accumulating while Enochian is up
- Firestarter (40% on Fire) and Thunderhead procs
- Ley Lines haste, Triplecast and Swiftcast instant casts
- Mana regeneration on server ticks

Potencies, costs and element multipliers are approximate.
"""

from enum import Enum

from xivtimeline.core import *
from xivtimeline.resources import (
    ExclusiveRule,
    RequiresRule,
    ResourceStore,
    cooldown,
    gauge,
    stack_timer,
    timed_buff,
)

FIRESTARTER_CHANCE = 0.4
ENOCHIAN_MULTIPLIER = 1.27

# damage multiplier by stance stacks (index 0 is 1 stack)
ASTRAL_FIRE_ON_FIRE = [1.4, 1.6, 1.8]
ASTRAL_FIRE_ON_ICE = [0.9, 0.8, 0.7]
UMBRAL_ICE_ON_FIRE = [0.9, 0.8, 0.7]

# mana regenerated per server tick by Umbral Ice stacks
UMBRAL_ICE_MANA_TICK = [3200, 4700, 6200]
NEUTRAL_MANA_TICK = 200


class BlackMageResource(Enum):
    MANA = "MANA"
    ASTRAL_FIRE = "ASTRAL_FIRE"
    UMBRAL_ICE = "UMBRAL_ICE"
    UMBRAL_HEARTS = "UMBRAL_HEARTS"
    ASTRAL_SOUL = "ASTRAL_SOUL"
    PARADOX = "PARADOX"
    POLYGLOT = "POLYGLOT"
    FIRESTARTER = "FIRESTARTER"
    THUNDERHEAD = "THUNDERHEAD"
    LEY_LINES = "LEY_LINES"
    TRIPLECAST = "TRIPLECAST"
    LEY_LINES_COOLDOWN = "LEY_LINES_COOLDOWN"
    TRIPLECAST_COOLDOWN = "TRIPLECAST_COOLDOWN"
    MANAFONT_COOLDOWN = "MANAFONT_COOLDOWN"
    AMPLIFIER_COOLDOWN = "AMPLIFIER_COOLDOWN"
    TRANSPOSE_COOLDOWN = "TRANSPOSE_COOLDOWN"


class BlackMageDerived(Enum):
    ENOCHIAN = "ENOCHIAN"


BLM = BlackMageResource


class Element(Enum):
    FIRE = "fire"
    ICE = "ice"


def astral_fire(slot: SlotState) -> int:
    return slot.store.amount(BLM.ASTRAL_FIRE)


def umbral_ice(slot: SlotState) -> int:
    return slot.store.amount(BLM.UMBRAL_ICE)


def enochian(store: ResourceStore) -> int:
    return int(store.amount(BLM.ASTRAL_FIRE) > 0 or store.amount(BLM.UMBRAL_ICE) > 0)


def enter_astral_fire(slot: SlotState, stacks: int):
    if umbral_ice(slot) == 3 and slot.store.amount(BLM.UMBRAL_HEARTS) == 3 and stacks == 3:
        slot.store.grant(BLM.PARADOX)
    slot.store.remove(BLM.UMBRAL_ICE)
    slot.store.set(BLM.ASTRAL_FIRE, amount=stacks)


def enter_umbral_ice(slot: SlotState, stacks: int):
    if astral_fire(slot) == 3 and stacks == 3:
        slot.store.grant(BLM.PARADOX)
    slot.store.remove(BLM.ASTRAL_FIRE)
    slot.store.remove(BLM.ASTRAL_SOUL)
    slot.store.set(BLM.UMBRAL_ICE, amount=stacks)


class BlackMageSpell(Skill):
    """
    Black Mage spell.

    Attributes:
        element (Optional[Element]): Element deciding stance interactions
        mana (int): Base mana cost before stance adjustments
    """

    def __init__(
        self,
        action_id: ActionID,
        name: str,
        potency: float,
        cast_time: int = GCD_MAX,
        mana: int = 0,
        element: Optional[Element] = None,
        **kwargs,
    ):
        super().__init__(
            action_id=action_id,
            name=name,
            action_type=ActionType.SPELL,
            potency=potency,
            cast_time=cast_time,
            application_delay=kwargs.pop("application_delay", 800),
            **kwargs,
        )
        self.mana = mana
        self.element = element

    def base_cast_time(self, slot: SlotState) -> int:
        # opposite element at full stance is cast in half the time
        if self.element == Element.FIRE and umbral_ice(slot) == 3:
            return self.cast_time // 2
        if self.element == Element.ICE and astral_fire(slot) == 3:
            return self.cast_time // 2
        return self.cast_time

    def mana_cost(self, slot: SlotState) -> int:
        if self.element == Element.ICE and (astral_fire(slot) or umbral_ice(slot)):
            return 0
        if self.element == Element.FIRE and astral_fire(slot):
            if slot.store.is_active(BLM.UMBRAL_HEARTS):
                return self.mana
            return self.mana * 2
        return self.mana

    def cost(self, slot: SlotState) -> Dict[Enum, int]:
        costs = super().cost(slot)
        mana = self.mana_cost(slot)
        if mana:
            costs[BLM.MANA] = mana
        return costs

    def consume_hearts(self, slot: SlotState):
        if self.element == Element.FIRE and astral_fire(slot) and self.mana:
            slot.store.consume(BLM.UMBRAL_HEARTS)


class Fire(BlackMageSpell):
    def __init__(self):
        super().__init__(ActionID.FIRE, "Fire", potency=180, mana=800, element=Element.FIRE, min_level=2)

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        self.consume_hearts(slot)
        if umbral_ice(slot):
            slot.store.remove(BLM.UMBRAL_ICE)
        else:
            slot.store.gain(BLM.ASTRAL_FIRE)
        if slot.roll(FIRESTARTER_CHANCE, "Firestarter", ctx):
            slot.store.grant(BLM.FIRESTARTER)


class FireIII(BlackMageSpell):
    def __init__(self):
        super().__init__(
            ActionID.FIRE_III, "Fire III", potency=290, cast_time=3500, mana=2000, element=Element.FIRE,
            min_level=35,
        )

    def is_instant(self, slot: SlotState) -> bool:
        return slot.store.is_active(BLM.FIRESTARTER) or super().is_instant(slot)

    def mana_cost(self, slot: SlotState) -> int:
        if slot.store.is_active(BLM.FIRESTARTER):
            return 0
        return super().mana_cost(slot)

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.consume(BLM.FIRESTARTER)
        enter_astral_fire(slot, 3)
        slot.store.grant(BLM.THUNDERHEAD)


class FireIV(BlackMageSpell):
    def __init__(self):
        super().__init__(
            ActionID.FIRE_IV, "Fire IV", potency=300, cast_time=2000, mana=800, element=Element.FIRE,
            min_level=60,
        )

    def requirements_met(self, slot: SlotState) -> bool:
        return astral_fire(slot) > 0

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        self.consume_hearts(slot)
        slot.store.gain(BLM.ASTRAL_SOUL)


class FlareStar(BlackMageSpell):
    def __init__(self):
        super().__init__(
            ActionID.FLARE_STAR, "Flare Star", potency=500, cast_time=3000, falloff=0.65,
            element=Element.FIRE, costs={BLM.ASTRAL_SOUL: 6}, min_level=100,
        )


class BlizzardIII(BlackMageSpell):
    def __init__(self):
        super().__init__(
            ActionID.BLIZZARD_III, "Blizzard III", potency=290, cast_time=3500, mana=800,
            element=Element.ICE, min_level=35,
        )

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        enter_umbral_ice(slot, 3)
        slot.store.grant(BLM.THUNDERHEAD)


class BlizzardIV(BlackMageSpell):
    def __init__(self):
        super().__init__(
            ActionID.BLIZZARD_IV, "Blizzard IV", potency=300, cast_time=2000, mana=800,
            element=Element.ICE, min_level=58,
        )

    def requirements_met(self, slot: SlotState) -> bool:
        return umbral_ice(slot) > 0

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.set(BLM.UMBRAL_HEARTS, amount=3)


class Paradox(BlackMageSpell):
    def __init__(self):
        super().__init__(ActionID.PARADOX, "Paradox", potency=540, cast_time=0, mana=1600, min_level=90)

    def requirements_met(self, slot: SlotState) -> bool:
        return slot.store.is_active(BLM.PARADOX)

    def mana_cost(self, slot: SlotState) -> int:
        return 0 if umbral_ice(slot) else self.mana

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.remove(BLM.PARADOX)
        if astral_fire(slot):
            slot.store.grant(BLM.FIRESTARTER)


class Xenoglossy(BlackMageSpell):
    def __init__(self):
        super().__init__(
            ActionID.XENOGLOSSY, "Xenoglossy", potency=890, cast_time=0, costs={BLM.POLYGLOT: 1},
            min_level=80,
        )


class Foul(BlackMageSpell):
    def __init__(self):
        super().__init__(
            ActionID.FOUL, "Foul", potency=600, cast_time=0, falloff=0.6, costs={BLM.POLYGLOT: 1},
            min_level=70,
        )


class HighThunder(BlackMageSpell):
    def __init__(self):
        super().__init__(ActionID.HIGH_THUNDER, "High Thunder", potency=150, cast_time=0, min_level=92)

    def requirements_met(self, slot: SlotState) -> bool:
        return slot.store.is_active(BLM.THUNDERHEAD)

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.remove(BLM.THUNDERHEAD)


class BlackMageAbility(Skill):
    def __init__(self, action_id: ActionID, name: str, **kwargs):
        super().__init__(action_id=action_id, name=name, action_type=ActionType.ABILITY, **kwargs)


class Transpose(BlackMageAbility):
    def __init__(self):
        super().__init__(ActionID.TRANSPOSE, "Transpose", cooldown=BLM.TRANSPOSE_COOLDOWN, min_level=4)

    def requirements_met(self, slot: SlotState) -> bool:
        return slot.store.is_active(BlackMageDerived.ENOCHIAN)

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        if astral_fire(slot):
            enter_umbral_ice(slot, 1)
        else:
            enter_astral_fire(slot, 1)
        slot.store.grant(BLM.THUNDERHEAD)


class LeyLines(BlackMageAbility):
    def __init__(self):
        super().__init__(ActionID.LEY_LINES, "Ley Lines", cooldown=BLM.LEY_LINES_COOLDOWN, min_level=52)

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.grant(BLM.LEY_LINES)


class Triplecast(BlackMageAbility):
    def __init__(self):
        super().__init__(ActionID.TRIPLECAST, "Triplecast", cooldown=BLM.TRIPLECAST_COOLDOWN, min_level=66)

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.grant(BLM.TRIPLECAST, stacks=3)


class Manafont(BlackMageAbility):
    def __init__(self):
        super().__init__(ActionID.MANAFONT, "Manafont", cooldown=BLM.MANAFONT_COOLDOWN, min_level=30)

    def requirements_met(self, slot: SlotState) -> bool:
        return astral_fire(slot) > 0

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.set(BLM.MANA, amount=10_000)
        slot.store.set(BLM.UMBRAL_HEARTS, amount=3)
        slot.store.set(BLM.ASTRAL_FIRE, amount=3)
        slot.store.grant(BLM.PARADOX)
        slot.store.grant(BLM.THUNDERHEAD)


class Amplifier(BlackMageAbility):
    def __init__(self):
        super().__init__(ActionID.AMPLIFIER, "Amplifier", cooldown=BLM.AMPLIFIER_COOLDOWN, min_level=86)

    def requirements_met(self, slot: SlotState) -> bool:
        return slot.store.is_active(BlackMageDerived.ENOCHIAN)

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.gain(BLM.POLYGLOT)


class BlackMage(JobDefinition):
    """Black Mage mechanics: stance multipliers, Ley Lines haste and mana ticks."""

    job = JobClass.BLACK_MAGE
    instant_cast_buffs = (CommonResource.SWIFTCAST, BLM.TRIPLECAST)

    def resource_infos(self) -> Dict[Enum, ResourceInfo]:
        return {
            BLM.MANA: gauge(10_000, 10_000),
            BLM.ASTRAL_FIRE: gauge(3),
            BLM.UMBRAL_ICE: gauge(3),
            BLM.UMBRAL_HEARTS: gauge(3),
            BLM.ASTRAL_SOUL: gauge(6, warn_on_overcap=True),
            BLM.PARADOX: gauge(1),
            BLM.POLYGLOT: stack_timer(3, 30_000, requires=BlackMageDerived.ENOCHIAN, warn_on_overcap=True),
            BLM.FIRESTARTER: timed_buff(30_000, warn_on_overwrite=True, warn_on_timeout=True),
            BLM.THUNDERHEAD: timed_buff(30_000, warn_on_timeout=True),
            BLM.LEY_LINES: timed_buff(20_000, snapshot=True),
            BLM.TRIPLECAST: timed_buff(15_000, max_stacks=3, warn_on_timeout=True),
            BLM.LEY_LINES_COOLDOWN: cooldown(120_000),
            BLM.TRIPLECAST_COOLDOWN: cooldown(60_000, max_stacks=2),
            BLM.MANAFONT_COOLDOWN: cooldown(100_000),
            BLM.AMPLIFIER_COOLDOWN: cooldown(120_000),
            BLM.TRANSPOSE_COOLDOWN: cooldown(5_000),
        }

    def derived_resources(self):
        return {BlackMageDerived.ENOCHIAN: enochian}

    def override_rules(self) -> Tuple:
        return (
            ExclusiveRule((BLM.ASTRAL_FIRE, BLM.UMBRAL_ICE)),
            RequiresRule(BLM.UMBRAL_HEARTS, BlackMageDerived.ENOCHIAN),
            RequiresRule(BLM.POLYGLOT, BlackMageDerived.ENOCHIAN, on_timer=True),
            RequiresRule(BLM.ASTRAL_SOUL, BLM.ASTRAL_FIRE),
        )

    def register_skills(self):
        for skill in (
            Fire(),
            FireIII(),
            FireIV(),
            FlareStar(),
            BlizzardIII(),
            BlizzardIV(),
            Paradox(),
            Xenoglossy(),
            Foul(),
            HighThunder(),
            Transpose(),
            LeyLines(),
            Triplecast(),
            Manafont(),
            Amplifier(),
        ):
            self.register_skill(skill)

    def haste(self, slot: SlotState, skill: Skill) -> int:
        if skill.is_spell and slot.store.is_active(BLM.LEY_LINES) and slot.store.enabled(BLM.LEY_LINES):
            return 15
        return super().haste(slot, skill)

    def damage_modifiers(self, slot: SlotState, skill: Skill) -> List[PotencyModifier]:
        modifiers = []
        if not isinstance(skill, BlackMageSpell):
            return modifiers
        if slot.store.is_active(BlackMageDerived.ENOCHIAN):
            modifiers.append(PotencyModifier("Enochian", ENOCHIAN_MULTIPLIER))
        fire, ice = astral_fire(slot), umbral_ice(slot)
        if skill.element == Element.FIRE and fire:
            modifiers.append(PotencyModifier(f"Astral Fire {fire}", ASTRAL_FIRE_ON_FIRE[fire - 1]))
        elif skill.element == Element.ICE and fire:
            modifiers.append(PotencyModifier(f"Astral Fire {fire}", ASTRAL_FIRE_ON_ICE[fire - 1]))
        elif skill.element == Element.FIRE and ice:
            modifiers.append(PotencyModifier(f"Umbral Ice {ice}", UMBRAL_ICE_ON_FIRE[ice - 1]))
        return modifiers

    def on_server_tick(self, slot: SlotState):
        fire, ice = astral_fire(slot), umbral_ice(slot)
        if fire:
            return
        slot.store.gain(BLM.MANA, UMBRAL_ICE_MANA_TICK[ice - 1] if ice else NEUTRAL_MANA_TICK)
