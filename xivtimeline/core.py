"""
XIV Timeline Simulation Core
============================

This module implements the building blocks the replay engine drives: skills,
job definitions and the live simulation state of one timeline slot.

Key Components:
--------------
- Skill: Base class for every action a job can put on the timeline
- JobDefinition: A job's resource table, skills and mechanics hooks
- SlotState: Live resources, locks, combo and scheduled events of one slot
- CastContext: Per-use information handed to a skill's effect hooks

Slots use a discrete event simulation approach: time advances to the next
significant event (a scheduled server tick, a buff expiry, a recovered
charge) rather than in fixed steps, so every transition happens at its exact
millisecond.
"""

import heapq
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from xivtimeline.common import (
    ActionID,
    ActionType,
    COMBO_DURATION,
    ComboFlag,
    CommonResource,
    GCD_MAX,
    JobClass,
    SERVER_TICK_DURATION,
    SkillUnavailableReason,
    WarningKind,
)
from xivtimeline.errors import ValidationReport
from xivtimeline.potency import PotencyModifier
from xivtimeline.resources import (
    DerivedFunction,
    ResourceInfo,
    ResourceOverrideData,
    ResourceStore,
    cooldown,
)
from xivtimeline.rng import DeterministicRng
from xivtimeline.task import Task, update_step_size
from xivtimeline.timeline import ActionNode
from xivtimeline.timing import TimingModel

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class WarningMark:
    """A warning recorded while a slot was simulated.

    Attributes:
        time: Slot time the warning happened at (ms)
        kind: What went wrong
        resource: Name of the resource involved, if any
        message: Free-form text for custom warnings
    """

    time: int
    kind: WarningKind
    resource: Optional[str] = None
    message: str = ""


@dataclass
class CastContext:
    """Per-use information handed to a skill's hooks.

    Attributes:
        node: The node being resolved
        combo_ok: Whether the skill continued an open combo
        procs: Names of the procs that fired while resolving
    """

    node: ActionNode
    combo_ok: bool = False
    procs: List[str] = field(default_factory=list)

    @property
    def target_count(self) -> int:
        return self.node.target_count


class Skill:
    """
    Base class for all actions (weaponskills, spells, abilities, limit breaks).

    Subclasses override the hooks to implement job mechanics; the default
    implementation only covers cooldown, flat costs, level and combo checks.

    Attributes:
        action_id (ActionID): Unique identifier for this action
        name (str): Human-readable name of the action
        action_type (ActionType): Decides GCD membership
        cast_time (int): Base cast time in milliseconds, 0 for instants
        recast_time (int): Base recast in milliseconds (GCD actions only)
        cooldown (Optional[Enum]): Cooldown resource spent on use
        potency (float): Base potency against the primary target
        falloff (Optional[float]): Damage reduction for every additional target
        application_delay (int): Delay between snapshot and visible damage
        min_level (int): Level the action is learned at
        costs (Dict[Enum, int]): Flat resource costs
        combo_from (Tuple[ActionID, ...]): Actions this one continues a combo from
        combo_potency (Optional[float]): Potency when the combo was continued
        starts_combo (bool): Whether the action opens a combo
        continues_combo (bool): Whether a continued combo stays open afterwards
        combo_required (bool): Whether the action is unusable outside its combo
        animation_lock (Optional[int]): Untaxed lock override for instants
        is_healing (bool): Whether the potency is healing
    """

    def __init__(
        self,
        action_id: ActionID,
        name: str,
        action_type: ActionType,
        cast_time: int = 0,
        recast_time: int = GCD_MAX,
        cooldown: Optional[Enum] = None,
        potency: float = 0,
        falloff: Optional[float] = None,
        application_delay: int = 0,
        min_level: int = 1,
        costs: Optional[Dict[Enum, int]] = None,
        combo_from: Tuple[ActionID, ...] = (),
        combo_potency: Optional[float] = None,
        starts_combo: bool = False,
        continues_combo: bool = False,
        combo_required: bool = False,
        animation_lock: Optional[int] = None,
        is_healing: bool = False,
    ):
        self.action_id = action_id
        self.name = name
        self.action_type = action_type
        self.cast_time = cast_time
        self.recast_time = recast_time
        self.cooldown = cooldown
        self.potency = potency
        self.falloff = falloff
        self.application_delay = application_delay
        self.min_level = min_level
        self.costs = dict(costs or {})
        self.combo_from = tuple(combo_from)
        self.combo_potency = combo_potency
        self.starts_combo = starts_combo
        self.continues_combo = continues_combo
        self.combo_required = combo_required
        self.animation_lock = animation_lock
        self.is_healing = is_healing

    @property
    def is_gcd(self) -> bool:
        return self.action_type in (ActionType.WEAPONSKILL, ActionType.SPELL)

    @property
    def is_spell(self) -> bool:
        return self.action_type == ActionType.SPELL

    @property
    def is_limit_break(self) -> bool:
        return self.action_type == ActionType.LIMIT_BREAK

    @property
    def is_combo_action(self) -> bool:
        return self.starts_combo or bool(self.combo_from)

    def base_cast_time(self, slot: "SlotState") -> int:
        """Cast time before speed and instant-cast buffs."""
        return self.cast_time

    def is_instant(self, slot: "SlotState") -> bool:
        """Whether the action is instant without spending an instant-cast buff."""
        return self.base_cast_time(slot) <= 0

    def cost(self, slot: "SlotState") -> Dict[Enum, int]:
        """Resources spent when the action resolves."""
        return dict(self.costs)

    def requirements_met(self, slot: "SlotState") -> bool:
        """Job-specific prerequisites (procs, stances, follow-up windows)."""
        return True

    def combo_satisfied(self, slot: "SlotState") -> bool:
        return any(slot.check_combo_chain(action_id) for action_id in self.combo_from)

    def combo_flag(self, slot: "SlotState", ctx: CastContext) -> ComboFlag:
        """What resolving this action does to the combo state."""
        if self.combo_from:
            return ComboFlag.SUCCESS if ctx.combo_ok and self.continues_combo else ComboFlag.RESET
        if self.starts_combo:
            return ComboFlag.SUCCESS
        return ComboFlag.NONE

    def potency_for(self, slot: "SlotState", ctx: CastContext) -> float:
        if ctx.combo_ok and self.combo_potency is not None:
            return self.combo_potency
        return self.potency

    def validate(self, slot: "SlotState") -> List[SkillUnavailableReason]:
        """
        Check the action against the slot's current state.

        Returns:
            List of reasons the action cannot be used; empty when it can
        """
        reasons = []
        if self.min_level > slot.level:
            reasons.append(SkillUnavailableReason.NOT_UNLOCKED)
        if self.cooldown is not None and not slot.store.available(self.cooldown):
            reasons.append(SkillUnavailableReason.ON_COOLDOWN)
        if any(not slot.store.available(key, amount) for key, amount in self.cost(slot).items()):
            reasons.append(SkillUnavailableReason.NOT_ENOUGH_RESOURCE)
        if not self.requirements_met(slot):
            reasons.append(SkillUnavailableReason.REQUIREMENTS_NOT_MET)
        if self.combo_required and not self.combo_satisfied(slot):
            reasons.append(SkillUnavailableReason.BROKEN_COMBO)
        return reasons

    def apply_effect(self, slot: "SlotState", ctx: CastContext):
        """Apply the action's grants and state changes after costs are paid."""

    def __repr__(self):
        return f"{type(self).__name__}({self.action_id.name})"


class JobDefinition(ABC):
    """
    Base class for all job definitions.

    A job declares its resources (a closed enumeration with static
    descriptors), derived resources, override consistency rules and skills,
    and overrides the mechanics hooks the engine calls while resolving.

    Attributes:
        job (JobClass): Job this definition simulates
        speed_modifier (int): Inherent haste percentage
        instant_cast_buffs (Tuple[Enum, ...]): Buffs that make hard casts instant, in consumption order
        resources (Dict[Enum, ResourceInfo]): Resource descriptors, common resources included
        skills (Dict[ActionID, Skill]): Registered skills
    """

    job: JobClass
    speed_modifier: int = 0
    instant_cast_buffs: Tuple[Enum, ...] = ()

    def __init__(self):
        self.resources: Dict[Enum, ResourceInfo] = {CommonResource.GCD: cooldown(GCD_MAX)}
        self.resources.update(self.resource_infos())
        self.skills: Dict[ActionID, Skill] = {}
        self.register_skills()

    @abstractmethod
    def resource_infos(self) -> Dict[Enum, ResourceInfo]:
        """Job resource descriptors"""

    @abstractmethod
    def register_skills(self):
        """Register the job's skills"""

    def derived_resources(self) -> Dict[Enum, DerivedFunction]:
        return {}

    def override_rules(self) -> Tuple:
        """Cross-resource rules initial overrides must satisfy."""
        return ()

    def register_skill(self, skill: Skill):
        if skill.action_id in self.skills:
            raise ValueError(f"{skill.action_id.name} registered twice for {self.job.name}")
        self.skills[skill.action_id] = skill

    def get_skill(self, action_id: ActionID) -> Optional[Skill]:
        return self.skills.get(action_id)

    def create_store(self) -> ResourceStore:
        return ResourceStore(self.resources, self.derived_resources())

    def validate_overrides(self, overrides: Iterable[ResourceOverrideData]) -> ValidationReport:
        return self.create_store().validate_overrides(overrides, self.override_rules())

    def haste(self, slot: "SlotState", skill: Skill) -> int:
        """Haste percentage applied to the skill's cast and recast."""
        return self.speed_modifier

    def instant_source(self, slot: "SlotState", skill: Skill) -> Optional[Enum]:
        """Buff that would turn this hard cast into an instant, if any."""
        if not skill.is_spell:
            return None
        for key in self.instant_cast_buffs:
            if slot.store.is_active(key):
                return key
        return None

    def damage_modifiers(self, slot: "SlotState", skill: Skill) -> List[PotencyModifier]:
        return []

    def snapshot_buffs(self, slot: "SlotState") -> Tuple[str, ...]:
        """Names of the self buffs captured by a snapshot."""
        return tuple(
            key.name
            for key, info in self.resources.items()
            if info.snapshot and slot.store.is_active(key) and slot.store.enabled(key)
        )

    def on_server_tick(self, slot: "SlotState"):
        """Regenerate resources on a server tick"""


class SlotState:
    """
    Live simulation state of one timeline slot.

    Attributes:
        index (int): Slot index in the timeline
        job (JobDefinition): Job simulated in this slot
        level (int): Character level
        timing (TimingModel): Duration model of the session
        rng (DeterministicRng): Proc stream of this slot
        store (ResourceStore): Resources of this slot
        current_time (int): Slot time in milliseconds, negative before the pull
        lock_until (int): Time the slot can act again
        task_queue (list): Priority queue of scheduled events
        warnings (List[WarningMark]): Warnings recorded so far
        applied (int): Number of timeline nodes resolved into this state
    """

    def __init__(
        self,
        index: int,
        job: JobDefinition,
        level: int,
        timing: TimingModel,
        rng: DeterministicRng,
        start_time: int,
        overrides: Iterable[ResourceOverrideData] = (),
        first_tick_delay: int = SERVER_TICK_DURATION,
    ):
        self.index = index
        self.job = job
        self.level = level
        self.timing = timing
        self.rng = rng
        self.store = job.create_store()
        self.store.apply_overrides(overrides)

        self.current_time = start_time
        self.lock_until = start_time
        self.task_queue: List[Task] = []
        self._task_seq = 0
        self.warnings: List[WarningMark] = []
        self.applied = 0

        self.last_combo_action_id = ActionID.NONE
        self.combo_timer = 0

        self.schedule_task(first_tick_delay, self._server_tick)

    @property
    def gcd_remaining(self) -> int:
        return self.store.timer(CommonResource.GCD)

    @property
    def combo_active(self) -> bool:
        return self.last_combo_action_id != ActionID.NONE and self.combo_timer > 0

    def schedule_task(self, delay: int, callback: Callable, *args, **kwargs):
        """
        Schedule a task to execute after a specified delay.

        Args:
            delay: Time in milliseconds until the event should occur
            callback: Function to call when the event occurs
            *args: Positional arguments to pass to the callback function
            **kwargs: Keyword arguments to pass to the callback function
        """
        heapq.heappush(
            self.task_queue,
            Task(self.current_time + delay, self._task_seq, callback, args, kwargs),
        )
        self._task_seq += 1

    def _server_tick(self):
        self.job.on_server_tick(self)
        self.collect_warnings()
        self.schedule_task(SERVER_TICK_DURATION, self._server_tick)

    def advance_to(self, time: int):
        """Advance the slot to ``time``; never moves backwards."""
        if time > self.current_time:
            self.step(time - self.current_time)

    def step(self, delta_time: int):
        """
        Run the slot simulation for the specified duration.

        This method advances the slot time, processes events, and updates
        resources until the duration is reached.

        Args:
            delta_time: Time in milliseconds to advance
        """
        remaining_time = delta_time
        while True:
            self._process_events()
            if remaining_time <= 0:
                break

            step_size = self._calc_step_size()
            if step_size is None or step_size > remaining_time:
                step_size = remaining_time

            remaining_time -= step_size
            self.current_time += step_size
            self.store.tick(step_size)
            if self.combo_timer > 0:
                self.combo_timer = max(0, self.combo_timer - step_size)
                if self.combo_timer == 0:
                    self.last_combo_action_id = ActionID.NONE
            self.collect_warnings()

    def _process_events(self):
        while self.task_queue and self.task_queue[0].time <= self.current_time:
            event = heapq.heappop(self.task_queue)
            event.execute()

    def _calc_step_size(self) -> Optional[int]:
        step_size: Optional[int] = None
        if self.task_queue:
            step_size = self.task_queue[0].time - self.current_time
        step_size = update_step_size(step_size, self.store.calc_step_size())
        if self.combo_timer > 0:
            step_size = update_step_size(step_size, self.combo_timer)
        return step_size

    def check_combo_chain(self, precombo_action_id: ActionID) -> bool:
        """
        Check if the current action continues a combo from ``precombo_action_id``.

        Args:
            precombo_action_id: The action that should have been used previously

        Returns:
            bool: True if that action opened the combo and it is still open
        """
        return self.last_combo_action_id == precombo_action_id and self.combo_timer > 0

    def set_last_cast(self, action_id: ActionID, combo_flag: ComboFlag = ComboFlag.NONE):
        if combo_flag == ComboFlag.RESET:
            self.reset_combo()
        elif combo_flag == ComboFlag.SUCCESS:
            self.start_combo(action_id)

    def start_combo(self, action_id: ActionID, combo_time: int = COMBO_DURATION):
        self.last_combo_action_id = action_id
        self.combo_timer = combo_time

    def reset_combo(self):
        self.last_combo_action_id = ActionID.NONE
        self.combo_timer = 0

    def roll(self, probability: float, proc_name: str, ctx: Optional[CastContext] = None) -> bool:
        """Resolve a proc check; fired procs are recorded on ``ctx``."""
        fired = self.rng.roll(probability)
        if fired and ctx is not None:
            ctx.procs.append(proc_name)
        return fired

    def warn(self, kind: WarningKind, resource: Optional[Enum] = None, message: str = ""):
        self.warnings.append(
            WarningMark(self.current_time, kind, resource.name if resource else None, message)
        )

    def collect_warnings(self):
        for warning in self.store.drain_warnings():
            self.warn(warning.kind, warning.resource, warning.message)
