"""
Samurai Job Module

This module plugs the Samurai job into the timeline engine:
- Weaponskill combos opening on Gyofu/Hakaze and finishing on Gekko, Kasha and Yukikaze
- Kenki, Sen and Meditation gauges
- Fugetsu (damage) and Fuka (haste) self buffs
- Meikyo Shisui, which lets finishers skip their combo
- Midare Setsugekka and its Tsubame-gaeshi follow-up

Potencies follow the level 100 tooltips and are approximate.
"""

from enum import Enum

from xivtimeline.core import *
from xivtimeline.resources import cooldown, gauge, timed_buff


class SamuraiResource(Enum):
    KENKI = "KENKI"
    SETSU = "SETSU"
    GETSU = "GETSU"
    KA = "KA"
    MEDITATION = "MEDITATION"
    FUGETSU = "FUGETSU"
    FUKA = "FUKA"
    MEIKYO_SHISUI = "MEIKYO_SHISUI"
    TSUBAME_GAESHI_READY = "TSUBAME_GAESHI_READY"
    MEIKYO_COOLDOWN = "MEIKYO_COOLDOWN"
    IKISHOTEN_COOLDOWN = "IKISHOTEN_COOLDOWN"
    SENEI_COOLDOWN = "SENEI_COOLDOWN"
    SHINTEN_COOLDOWN = "SHINTEN_COOLDOWN"
    HAGAKURE_COOLDOWN = "HAGAKURE_COOLDOWN"


SEN = (SamuraiResource.SETSU, SamuraiResource.GETSU, SamuraiResource.KA)


def count_sen(slot: SlotState) -> int:
    return sum(slot.store.amount(sen) for sen in SEN)


def consume_meikyo(slot: SlotState) -> bool:
    """
    Consumes one stack of Meikyo Shisui.

    Returns:
        bool: True if a stack was consumed
    """
    return slot.store.consume(SamuraiResource.MEIKYO_SHISUI)


class SamuraiWeaponSkill(Skill):
    """
    Samurai GCD weaponskill.

    Attributes:
        kenki (int): Kenki gained when the combo was continued (or the skill opens one)
        sen (Optional[SamuraiResource]): Sen gained when the combo was continued
        buff (Optional[SamuraiResource]): Self buff granted when the combo was continued
    """

    def __init__(
        self,
        action_id: ActionID,
        name: str,
        potency: float,
        kenki: int = 0,
        sen: Optional[SamuraiResource] = None,
        buff: Optional[SamuraiResource] = None,
        finisher: bool = False,
        **kwargs,
    ):
        super().__init__(
            action_id=action_id,
            name=name,
            action_type=ActionType.WEAPONSKILL,
            potency=potency,
            application_delay=kwargs.pop("application_delay", 620),
            **kwargs,
        )
        self.kenki = kenki
        self.sen = sen
        self.buff = buff
        self.finisher = finisher

    def combo_satisfied(self, slot: SlotState) -> bool:
        if self.finisher and slot.store.is_active(SamuraiResource.MEIKYO_SHISUI):
            return True
        return super().combo_satisfied(slot)

    def combo_flag(self, slot: SlotState, ctx: CastContext) -> ComboFlag:
        # finishers under Meikyo leave an open combo untouched
        if self.finisher and ctx.combo_ok and not super().combo_satisfied(slot):
            return ComboFlag.NONE
        return super().combo_flag(slot, ctx)

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        if self.finisher and not super().combo_satisfied(slot):
            consume_meikyo(slot)
        if ctx.combo_ok or not self.combo_from:
            if self.kenki:
                slot.store.gain(SamuraiResource.KENKI, self.kenki)
            if self.sen is not None:
                slot.store.gain(self.sen)
            if self.buff is not None:
                slot.store.grant(self.buff)


class Gyofu(SamuraiWeaponSkill):
    def __init__(self):
        super().__init__(ActionID.GYOFU, "Gyofu", potency=240, kenki=5, starts_combo=True, min_level=92)


class Hakaze(SamuraiWeaponSkill):
    def __init__(self):
        super().__init__(ActionID.HAKAZE, "Hakaze", potency=200, kenki=5, starts_combo=True)


class Jinpu(SamuraiWeaponSkill):
    def __init__(self):
        super().__init__(
            ActionID.JINPU,
            "Jinpu",
            potency=140,
            combo_potency=300,
            kenki=5,
            buff=SamuraiResource.FUGETSU,
            combo_from=(ActionID.HAKAZE, ActionID.GYOFU),
            continues_combo=True,
            min_level=4,
        )


class Shifu(SamuraiWeaponSkill):
    def __init__(self):
        super().__init__(
            ActionID.SHIFU,
            "Shifu",
            potency=140,
            combo_potency=300,
            kenki=5,
            buff=SamuraiResource.FUKA,
            combo_from=(ActionID.HAKAZE, ActionID.GYOFU),
            continues_combo=True,
            min_level=18,
        )


class Yukikaze(SamuraiWeaponSkill):
    def __init__(self):
        super().__init__(
            ActionID.YUKIKAZE,
            "Yukikaze",
            potency=160,
            combo_potency=340,
            kenki=15,
            sen=SamuraiResource.SETSU,
            combo_from=(ActionID.HAKAZE, ActionID.GYOFU),
            finisher=True,
            min_level=50,
        )


class Gekko(SamuraiWeaponSkill):
    def __init__(self):
        super().__init__(
            ActionID.GEKKO,
            "Gekko",
            potency=210,
            combo_potency=420,
            kenki=10,
            sen=SamuraiResource.GETSU,
            buff=SamuraiResource.FUGETSU,
            combo_from=(ActionID.JINPU,),
            finisher=True,
            min_level=30,
        )


class Kasha(SamuraiWeaponSkill):
    def __init__(self):
        super().__init__(
            ActionID.KASHA,
            "Kasha",
            potency=210,
            combo_potency=420,
            kenki=10,
            sen=SamuraiResource.KA,
            buff=SamuraiResource.FUKA,
            combo_from=(ActionID.SHIFU,),
            finisher=True,
            min_level=40,
        )


class MidareSetsugekka(SamuraiWeaponSkill):
    def __init__(self):
        super().__init__(
            ActionID.MIDARE_SETSUGEKKA, "Midare Setsugekka", potency=640, cast_time=1800, min_level=50
        )

    def requirements_met(self, slot: SlotState) -> bool:
        return count_sen(slot) == 3

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        for sen in SEN:
            slot.store.remove(sen)
        slot.store.gain(SamuraiResource.MEDITATION)
        slot.store.grant(SamuraiResource.TSUBAME_GAESHI_READY)


class KaeshiSetsugekka(SamuraiWeaponSkill):
    def __init__(self):
        super().__init__(ActionID.KAESHI_SETSUGEKKA, "Kaeshi: Setsugekka", potency=640, min_level=76)

    def requirements_met(self, slot: SlotState) -> bool:
        return slot.store.is_active(SamuraiResource.TSUBAME_GAESHI_READY)

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.remove(SamuraiResource.TSUBAME_GAESHI_READY)


class SamuraiAbility(Skill):
    def __init__(self, action_id: ActionID, name: str, **kwargs):
        super().__init__(action_id=action_id, name=name, action_type=ActionType.ABILITY, **kwargs)


class MeikyoShisui(SamuraiAbility):
    def __init__(self):
        super().__init__(
            ActionID.MEIKYO_SHISUI,
            "Meikyo Shisui",
            cooldown=SamuraiResource.MEIKYO_COOLDOWN,
            min_level=50,
        )

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.grant(SamuraiResource.MEIKYO_SHISUI)


class Ikishoten(SamuraiAbility):
    def __init__(self):
        super().__init__(
            ActionID.IKISHOTEN, "Ikishoten", cooldown=SamuraiResource.IKISHOTEN_COOLDOWN, min_level=68
        )

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.gain(SamuraiResource.KENKI, 50)


class HissatsuShinten(SamuraiAbility):
    def __init__(self):
        super().__init__(
            ActionID.HISSATSU_SHINTEN,
            "Hissatsu: Shinten",
            cooldown=SamuraiResource.SHINTEN_COOLDOWN,
            potency=250,
            costs={SamuraiResource.KENKI: 25},
            min_level=52,
        )


class HissatsuSenei(SamuraiAbility):
    def __init__(self):
        super().__init__(
            ActionID.HISSATSU_SENEI,
            "Hissatsu: Senei",
            cooldown=SamuraiResource.SENEI_COOLDOWN,
            potency=800,
            costs={SamuraiResource.KENKI: 25},
            min_level=72,
        )


class Hagakure(SamuraiAbility):
    def __init__(self):
        super().__init__(
            ActionID.HAGAKURE, "Hagakure", cooldown=SamuraiResource.HAGAKURE_COOLDOWN, min_level=68
        )

    def requirements_met(self, slot: SlotState) -> bool:
        return count_sen(slot) > 0

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.gain(SamuraiResource.KENKI, 10 * count_sen(slot))
        for sen in SEN:
            slot.store.remove(sen)


class Samurai(JobDefinition):
    """Samurai mechanics: Fuka haste and Fugetsu damage."""

    job = JobClass.SAMURAI

    def resource_infos(self) -> Dict[Enum, ResourceInfo]:
        return {
            SamuraiResource.KENKI: gauge(100, warn_on_overcap=True),
            SamuraiResource.SETSU: gauge(1, warn_on_overcap=True),
            SamuraiResource.GETSU: gauge(1, warn_on_overcap=True),
            SamuraiResource.KA: gauge(1, warn_on_overcap=True),
            SamuraiResource.MEDITATION: gauge(3, warn_on_overcap=True),
            SamuraiResource.FUGETSU: timed_buff(40_000, snapshot=True, warn_on_timeout=True),
            SamuraiResource.FUKA: timed_buff(40_000, snapshot=True, warn_on_timeout=True),
            SamuraiResource.MEIKYO_SHISUI: timed_buff(20_000, max_stacks=3, warn_on_timeout=True),
            SamuraiResource.TSUBAME_GAESHI_READY: timed_buff(30_000, warn_on_timeout=True),
            SamuraiResource.MEIKYO_COOLDOWN: cooldown(55_000, max_stacks=2),
            SamuraiResource.IKISHOTEN_COOLDOWN: cooldown(120_000),
            SamuraiResource.SENEI_COOLDOWN: cooldown(60_000),
            SamuraiResource.SHINTEN_COOLDOWN: cooldown(1_000),
            SamuraiResource.HAGAKURE_COOLDOWN: cooldown(5_000),
        }

    def register_skills(self):
        for skill in (
            Hakaze(),
            Gyofu(),
            Jinpu(),
            Shifu(),
            Yukikaze(),
            Gekko(),
            Kasha(),
            MidareSetsugekka(),
            KaeshiSetsugekka(),
            MeikyoShisui(),
            Ikishoten(),
            HissatsuShinten(),
            HissatsuSenei(),
            Hagakure(),
        ):
            self.register_skill(skill)

    def haste(self, slot: SlotState, skill: Skill) -> int:
        if skill.is_gcd and slot.store.is_active(SamuraiResource.FUKA):
            return 13
        return super().haste(slot, skill)

    def damage_modifiers(self, slot: SlotState, skill: Skill) -> List[PotencyModifier]:
        if slot.store.is_active(SamuraiResource.FUGETSU):
            return [PotencyModifier("Fugetsu", 1.13)]
        return []
