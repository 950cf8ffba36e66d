# tests/conftest.py
import sys
from enum import Enum
from pathlib import Path

import pytest

# repository root = parent of tests/
ROOT = Path(__file__).resolve().parents[1]

root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from xivtimeline.common import ActionID, ActionType, JobClass  # noqa: E402
from xivtimeline.config import GameConfig  # noqa: E402
from xivtimeline.core import CastContext, JobDefinition, Skill, SlotState  # noqa: E402
from xivtimeline.game_state import GameState  # noqa: E402
from xivtimeline.resources import cooldown, gauge, timed_buff  # noqa: E402


class EngineResource(Enum):
    CHARGES = "CHARGES"
    GAUGE = "GAUGE"
    BUFF = "BUFF"


class Opener(Skill):
    def __init__(self):
        super().__init__(ActionID.HAKAZE, "Opener", ActionType.WEAPONSKILL, potency=200, starts_combo=True)

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.gain(EngineResource.GAUGE, 10)


class FollowUp(Skill):
    def __init__(self):
        super().__init__(
            ActionID.JINPU,
            "Follow-up",
            ActionType.WEAPONSKILL,
            potency=100,
            combo_potency=300,
            combo_from=(ActionID.HAKAZE,),
            combo_required=True,
        )


class ChargedAbility(Skill):
    def __init__(self):
        super().__init__(ActionID.TRIPLECAST, "Charged", ActionType.ABILITY, cooldown=EngineResource.CHARGES)

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        slot.store.grant(EngineResource.BUFF)


class ProcSpell(Skill):
    def __init__(self):
        super().__init__(ActionID.FIRE, "Proc Spell", ActionType.SPELL, cast_time=2500, potency=100)

    def apply_effect(self, slot: SlotState, ctx: CastContext):
        if slot.roll(0.5, "Test Proc", ctx):
            slot.store.gain(EngineResource.GAUGE, 5)


class Spender(Skill):
    def __init__(self):
        super().__init__(
            ActionID.XENOGLOSSY,
            "Spender",
            ActionType.WEAPONSKILL,
            potency=500,
            costs={EngineResource.GAUGE: 50},
        )


class BuffSpender(Skill):
    def __init__(self):
        super().__init__(
            ActionID.FIRE_III,
            "Buff Spender",
            ActionType.SPELL,
            cast_time=3500,
            potency=400,
            costs={EngineResource.BUFF: 1},
        )


class Finisher(Skill):
    def __init__(self):
        super().__init__(
            ActionID.METEOR, "Finisher", ActionType.LIMIT_BREAK, potency=1000, animation_lock=8100
        )


class EngineJob(JobDefinition):
    """Minimal job exercising charges, combos, procs, costs and limit breaks."""

    job = JobClass.PALADIN

    def resource_infos(self):
        return {
            EngineResource.CHARGES: cooldown(30_000, max_stacks=3),
            EngineResource.GAUGE: gauge(100, warn_on_overcap=True),
            EngineResource.BUFF: timed_buff(10_000, snapshot=True, warn_on_timeout=True),
        }

    def register_skills(self):
        for skill in (Opener(), FollowUp(), ChargedAbility(), ProcSpell(), Spender(), BuffSpender(), Finisher()):
            self.register_skill(skill)


@pytest.fixture
def config():
    return GameConfig(random_seed="1234")


@pytest.fixture
def engine_job():
    return EngineJob()


@pytest.fixture
def make_engine_state(engine_job):
    """Factory building an engine-job game state from config overrides."""

    def make(**kwargs):
        kwargs.setdefault("random_seed", "1234")
        return GameState(GameConfig(**kwargs), job=engine_job)

    return make


@pytest.fixture
def engine_state(make_engine_state):
    return make_engine_state()
