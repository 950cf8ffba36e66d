from xivtimeline.core import *
from xivtimeline.common import Role, get_role_for_job
from xivtimeline.errors import ConfigurationError
from xivtimeline.resources import cooldown, timed_buff

from xivtimeline.job.blackmage import BlackMage
from xivtimeline.job.samurai import Samurai


class Tincture(Skill):
    def __init__(self):
        super().__init__(
            action_id=ActionID.TINCTURE,
            name="Tincture",
            action_type=ActionType.ABILITY,
            cooldown=CommonResource.TINCTURE_COOLDOWN,
            animation_lock=1100,
        )

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.grant(CommonResource.TINCTURE)


class Swiftcast(Skill):
    def __init__(self):
        super().__init__(
            action_id=ActionID.SWIFTCAST,
            name="Swiftcast",
            action_type=ActionType.ABILITY,
            cooldown=CommonResource.SWIFTCAST_COOLDOWN,
            min_level=18,
        )

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.grant(CommonResource.SWIFTCAST)


class LimitBreak(Skill):
    """
    Level 3 role limit break.

    Limit breaks bypass potency scaling, so ``potency`` is a flat placeholder
    reported as is.
    """

    def __init__(self, action_id: ActionID, name: str, animation_lock: int, potency: float):
        super().__init__(
            action_id=action_id,
            name=name,
            action_type=ActionType.LIMIT_BREAK,
            potency=potency,
            animation_lock=animation_lock,
        )


COMMON_RESOURCES: Dict[Enum, ResourceInfo] = {
    CommonResource.TINCTURE: timed_buff(30_000, snapshot=True, warn_on_overwrite=True),
    CommonResource.TINCTURE_COOLDOWN: cooldown(270_000),
}

CASTER_RESOURCES: Dict[Enum, ResourceInfo] = {
    CommonResource.SWIFTCAST: timed_buff(10_000, warn_on_timeout=True),
    CommonResource.SWIFTCAST_COOLDOWN: cooldown(60_000),
}

ROLE_LIMIT_BREAKS = {
    Role.DPS_RANGED_MAGICAL: (ActionID.METEOR, "Meteor", 8_100, 6_500),
    Role.HEALER: (ActionID.METEOR, "Meteor", 8_100, 6_500),
    Role.DPS_MELEE: (ActionID.FINAL_HEAVEN, "Final Heaven", 3_860, 7_000),
}

JOBS = {
    JobClass.BLACK_MAGE: BlackMage,
    JobClass.SAMURAI: Samurai,
}


def register_common_actions(job: JobDefinition):
    """Register all common actions for the given job"""
    role = get_role_for_job(job.job)
    job.resources.update(COMMON_RESOURCES)
    job.register_skill(Tincture())

    if role in (Role.HEALER, Role.DPS_RANGED_MAGICAL):
        job.resources.update(CASTER_RESOURCES)
        job.register_skill(Swiftcast())

    if role in ROLE_LIMIT_BREAKS:
        job.register_skill(LimitBreak(*ROLE_LIMIT_BREAKS[role]))


def get_job(job_class: JobClass) -> JobDefinition:
    """
    Create the definition of a simulated job, common actions included.

    Raises:
        ConfigurationError: The job has no definition
    """
    if job_class not in JOBS:
        raise ConfigurationError(f"job {job_class.name} is not supported")
    job = JOBS[job_class]()
    register_common_actions(job)
    return job
