"""
Replay Engine
=============

``GameState`` owns one ``SlotState`` per timeline slot and keeps them in sync
with the timeline: every node is resolved against the live state of its slot
as of the node's position in the script.

There is no incremental undo. Appending an action at or after the live
cursor of its slot resolves it directly against the live state; every other
edit (inserting before the cursor, deleting, editing markers, adding slots)
discards all live state and replays the whole timeline from the start of the
countdown. Replays are deterministic, so a replay reaches exactly the state
the incremental path would have reached.

A node starts when its lock and GCD allow: timing, validation, the lock and
the recast are settled then. A hard cast pays its cost, applies its effect
and snapshots buffs when the cast ends, through a task on the slot's event
queue, so a replay bounded inside a cast shows the state before the cast
lands.

All slots share one display clock: after any operation every slot has been
advanced to at least ``display_time``.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple, Union

from xivtimeline.common import (
    ActionID,
    ComboFlag,
    CommonResource,
    SkillUnavailableReason,
    WarningKind,
    format_ms,
)
from xivtimeline.config import GameConfig
from xivtimeline.core import CastContext, JobDefinition, Skill, SlotState, WarningMark
from xivtimeline.errors import ConfigurationError, RebuildInProgressError
from xivtimeline.job import get_job
from xivtimeline.potency import Potency, PotencyResolver
from xivtimeline.resources import ResourceState
from xivtimeline.rng import DeterministicRng
from xivtimeline.timeline import ActionNode, Marker, Timeline

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotSnapshot:
    """Read-only view of one slot.

    Attributes:
        index: Slot index
        current_time: Time the slot's live state is at (ms)
        lock_until: Time the slot can act again (ms)
        nodes: Nodes of the slot in script order
        resources: Copies of every resource value, keyed by resource name
        warnings: Warnings recorded while the slot was simulated
    """

    index: int
    current_time: int
    lock_until: int
    nodes: Tuple[ActionNode, ...]
    resources: Dict[str, ResourceState]
    warnings: Tuple[WarningMark, ...]


@dataclass(frozen=True)
class GameSnapshot:
    """Read-only view of the whole session handed to renderers."""

    display_time: int
    slots: Tuple[SlotSnapshot, ...]
    markers: Tuple[Marker, ...]


class GameState:
    """
    The simulator: live per-slot state plus the timeline it replays.

    Attributes:
        config (GameConfig): Committed configuration
        job (JobDefinition): Job simulated in every slot
        timing (TimingModel): Duration model built from the configuration
        timeline (Timeline): Script being replayed
        slots (List[SlotState]): Live state per slot
        display_time (int): Shared display clock (ms)
    """

    def __init__(
        self,
        config: GameConfig,
        timeline: Optional[Timeline] = None,
        job: Optional[JobDefinition] = None,
    ):
        self.config = config
        self.job = job or get_job(config.job)
        report = self.job.validate_overrides(config.initial_resource_overrides)
        if not report.ok:
            raise ConfigurationError(f"inconsistent resource overrides: {report}")

        self.timing = config.timing_model()
        self.timeline = timeline if timeline is not None else Timeline()
        self.display_time = -config.countdown_ms
        self.slots: List[SlotState] = []
        self._rebuilding = False
        self.rebuild()

    @property
    def start_time(self) -> int:
        """Time every slot starts at: the beginning of the countdown."""
        return -self.config.countdown_ms

    def _new_slot(self, index: int) -> SlotState:
        return SlotState(
            index=index,
            job=self.job,
            level=self.config.level,
            timing=self.timing,
            rng=DeterministicRng(self.config.random_seed or "0", self.config.proc_mode),
            start_time=self.start_time,
            overrides=self.config.initial_resource_overrides,
            first_tick_delay=self.config.first_tick_ms,
        )

    def is_live(self, slot: int) -> bool:
        """Whether the slot's live state reflects every node of the slot."""
        return self.slots[slot].applied == len(self.timeline.nodes(slot))

    @staticmethod
    def _earliest_start(slot: SlotState, skill: Optional[Skill], node: ActionNode) -> int:
        start = max(node.requested_time, slot.lock_until, slot.current_time)
        if skill is not None and skill.is_gcd:
            start = max(start, slot.current_time + slot.gcd_remaining)
        return start

    def _resolve_node(self, slot: SlotState, index: int) -> int:
        """
        Start one node against ``slot`` and store the timed copy in the timeline.

        Timing, validation, the lock and the recast are settled at the start.
        The commit (cost, effect, snapshot) runs at once for instants and is
        queued on the slot for the end of a hard cast.

        Args:
            slot: Live state of the node's slot, positioned before the node
            index: Index of the node in its slot

        Returns:
            int: Time the node commits at
        """
        node = self.timeline.nodes(slot.index)[index]
        skill = self.job.get_skill(node.skill_id)
        slot.advance_to(self._earliest_start(slot, skill, node))
        start = slot.current_time
        slot.applied += 1

        if skill is None:
            log.debug("slot %d: %s is not a %s action", slot.index, node.skill_id.name, self.job.job.name)
            self.timeline.replace_node(
                slot.index,
                index,
                replace(
                    node.unresolved(),
                    resolved=True,
                    start_time=start,
                    invalid_reasons=(SkillUnavailableReason.UNKNOWN_SKILL,),
                ),
            )
            return start

        haste = self.job.haste(slot, skill)
        instant_source = None
        if skill.is_instant(slot):
            cast = 0
        else:
            instant_source = self.job.instant_source(slot, skill)
            cast = 0 if instant_source is not None else self.timing.cast_time(skill.base_cast_time(slot), haste)

        if skill.is_gcd:
            recast = self.timing.gcd_recast(skill.recast_time, haste)
        elif skill.cooldown is not None:
            recast = self.job.resources[skill.cooldown].cd_per_stack
        else:
            recast = 0
        lock = self.timing.cast_lock(cast) if cast > 0 else self.timing.instant_lock(skill.animation_lock)

        timed = replace(
            node.unresolved(),
            resolved=True,
            start_time=start,
            cast_time=cast,
            lock_duration=lock,
            recast_duration=recast,
            is_spell_cast=cast > 0,
        )

        reasons = skill.validate(slot)
        if reasons:
            log.debug(
                "slot %d: %s at %s is invalid: %s",
                slot.index,
                skill.name,
                format_ms(start),
                ", ".join(reason.value for reason in reasons),
            )
            self.timeline.replace_node(slot.index, index, replace(timed, invalid_reasons=tuple(reasons)))
            return start

        ctx = CastContext(node, combo_ok=skill.combo_satisfied(slot))
        cost = skill.cost(slot)
        if instant_source is not None:
            slot.store.consume(instant_source)
        if skill.is_gcd:
            slot.store.use_charge(CommonResource.GCD, recast)
        if skill.cooldown is not None:
            slot.store.use_charge(skill.cooldown)
        slot.lock_until = start + lock
        self.timeline.replace_node(slot.index, index, timed)

        if cast > 0:
            slot.schedule_task(cast, self._commit_node, slot, index, skill, ctx, cost)
        else:
            self._commit_node(slot, index, skill, ctx, cost)
        return start + cast

    def _commit_node(self, slot: SlotState, index: int, skill: Skill, ctx: CastContext, cost: Dict):
        """
        Pay the cost, apply the effect and snapshot buffs for a started node.

        A cost that can no longer be paid (a buff ran out during the cast)
        turns the node invalid and leaves the slot's resources untouched.
        """
        timed = self.timeline.nodes(slot.index)[index]
        snapshot_time = slot.current_time
        if not all(slot.store.available(key, amount) for key, amount in cost.items()):
            log.debug("slot %d: %s cannot pay its cost at %s", slot.index, skill.name, format_ms(snapshot_time))
            slot.warn(WarningKind.CUSTOM, message=f"{skill.name} could not pay its cost when the cast ended")
            self.timeline.replace_node(
                slot.index,
                index,
                replace(timed, invalid_reasons=(SkillUnavailableReason.NOT_ENOUGH_RESOURCE,)),
            )
            return

        buffs = self.job.snapshot_buffs(slot)
        party_buffs = self.timeline.party_buffs_at(snapshot_time)
        potency = None
        base_potency = skill.potency_for(slot, ctx)
        if base_potency:
            potency = Potency(
                base=base_potency,
                target_count=timed.target_count,
                falloff=skill.falloff,
                modifiers=tuple(self.job.damage_modifiers(slot, skill)),
                is_healing=skill.is_healing,
                is_limit_break=skill.is_limit_break,
            )

        for key, amount in cost.items():
            slot.store.consume(key, amount)
        skill.apply_effect(slot, ctx)

        combo_flag = skill.combo_flag(slot, ctx)
        if skill.is_combo_action and slot.combo_active and not ctx.combo_ok and combo_flag != ComboFlag.NONE:
            slot.warn(WarningKind.COMBO_BREAK, message=f"{skill.name} broke the combo")
        slot.set_last_cast(skill.action_id, combo_flag)
        slot.collect_warnings()

        log.debug("slot %d: %s resolved at %s", slot.index, skill.name, format_ms(timed.start_time))
        self.timeline.replace_node(
            slot.index,
            index,
            replace(
                timed,
                snapshot_time=snapshot_time,
                application_time=snapshot_time + skill.application_delay,
                buffs=buffs,
                party_buffs=party_buffs,
                procs=tuple(ctx.procs),
                potency=potency,
            ),
        )

    def _advance_all(self, time: int):
        for slot in self.slots:
            slot.advance_to(time)

    def rebuild_up_to(self, time: Optional[int] = None):
        """
        Discard live state and replay the timeline from the countdown start.

        Every slot is re-seeded from the configuration and re-applies its
        nodes in script order. With a bound, only nodes that would start at
        or before ``time`` are started; the rest are left unresolved and the
        display clock moves to ``time``. A hard cast still running at ``time``
        has not paid its cost or applied its effect yet.

        Args:
            time: Replay bound (ms), or None to replay every node

        Raises:
            RebuildInProgressError: A replay is already running
        """
        if self._rebuilding:
            raise RebuildInProgressError("rebuild_up_to re-entered while a replay is running")
        self._rebuilding = True
        try:
            self.slots = [self._new_slot(index) for index in range(self.timeline.slot_count)]
            for slot in self.slots:
                self._replay_slot(slot, time)

            if time is None:
                self.display_time = max([self.display_time] + [slot.current_time for slot in self.slots])
            else:
                self.display_time = time
            self._advance_all(self.display_time)
        finally:
            self._rebuilding = False
        log.info(
            "replayed %d slot(s) up to %s",
            len(self.slots),
            "the end" if time is None else format_ms(time),
        )

    def _replay_slot(self, slot: SlotState, time: Optional[int]):
        settled = slot.current_time
        for index, node in enumerate(self.timeline.nodes(slot.index)):
            skill = self.job.get_skill(node.skill_id)
            if time is not None and self._earliest_start(slot, skill, node) > time:
                self.timeline.invalidate_from(slot.index, index)
                return
            settled = self._resolve_node(slot, index)
        if time is None:
            slot.advance_to(settled)

    def rebuild(self):
        """Replay every node of every slot."""
        self.rebuild_up_to(None)

    def apply_action(
        self,
        slot: int,
        skill: Union[ActionID, str],
        requested_time: Optional[int] = None,
        target_count: int = 1,
    ) -> ActionNode:
        """
        Put an action on the timeline and resolve it.

        The node is added even when it turns out invalid, so it can be shown
        and fixed.

        Args:
            slot: Slot index
            skill: Action id or action name (e.g. "FIRE_III")
            requested_time: Requested display time (ms); defaults to the
                first moment the slot can act
            target_count: Number of targets hit

        Returns:
            ActionNode: The resolved node

        Raises:
            ValueError: ``skill`` names no known action
            IndexError: ``slot`` does not exist
        """
        action_id = self._action_id(skill)
        state = self.slots[slot]
        live = self.is_live(slot)
        if requested_time is None:
            requested_time = max(state.current_time, state.lock_until) if live else self.display_time

        nodes = self.timeline.nodes(slot)
        incremental = (
            live
            and requested_time >= state.current_time
            and (not nodes or requested_time >= nodes[-1].requested_time)
        )
        index = self.timeline.insert_node(slot, action_id, requested_time, target_count)
        if not incremental:
            self.rebuild()
            return self.timeline.nodes(slot)[index]

        state.advance_to(self._resolve_node(state, index))
        self.display_time = max(self.display_time, state.current_time)
        self._advance_all(self.display_time)
        return self.timeline.nodes(slot)[index]

    @staticmethod
    def _action_id(skill: Union[ActionID, str, int]) -> ActionID:
        if isinstance(skill, ActionID):
            return skill
        if isinstance(skill, str):
            action_id = ActionID.__members__.get(skill.strip().upper().replace(" ", "_"))
            if action_id is None:
                raise ValueError(f"unknown action: {skill}")
            return action_id
        try:
            return ActionID(skill)
        except ValueError:
            raise ValueError(f"unknown action: {skill}") from None

    def delete_node(self, slot: int, index: int) -> ActionNode:
        """Remove a node and replay; returns the removed node."""
        removed = self.timeline.delete_node(slot, index)
        self.rebuild()
        return removed

    def advance_time(self, delta_time: int):
        """
        Move the display clock forward, as real-time playback does.

        Args:
            delta_time: Time in milliseconds to advance
        """
        target = self.display_time + max(0, delta_time)
        if not all(self.is_live(index) for index in range(len(self.slots))):
            self.rebuild_up_to(target)
            return
        self.display_time = target
        self._advance_all(target)

    def add_slot(self) -> Optional[int]:
        index = self.timeline.add_slot()
        if index is not None:
            self.rebuild()
        return index

    def clone_slot(self, slot: int) -> Optional[int]:
        index = self.timeline.clone_slot(slot)
        if index is not None:
            self.rebuild()
        return index

    def remove_slot(self, slot: int) -> bool:
        removed = self.timeline.remove_slot(slot)
        if removed:
            self.rebuild()
        return removed

    def add_marker(self, marker: Marker):
        self.timeline.add_marker(marker)
        self.rebuild()

    def delete_marker(self, marker: Marker) -> bool:
        deleted = self.timeline.delete_marker(marker)
        if deleted:
            self.rebuild()
        return deleted

    def resolver(self, tincture_multiplier: float = 1.0) -> PotencyResolver:
        """Potency resolver wired to this session's markers and stats."""
        return PotencyResolver(
            tincture_multiplier=tincture_multiplier,
            untargetable=self.timeline.is_untargetable,
            stats=self.config.stat_calculator(),
        )

    def total_potency(self, slot: int, tincture_multiplier: float = 1.0) -> float:
        return self.resolver(tincture_multiplier).total(self.timeline.nodes(slot))

    def snapshot(self) -> GameSnapshot:
        """Copy everything a renderer needs; later edits never show through."""
        return GameSnapshot(
            display_time=self.display_time,
            slots=tuple(
                SlotSnapshot(
                    index=slot.index,
                    current_time=slot.current_time,
                    lock_until=slot.lock_until,
                    nodes=self.timeline.nodes(slot.index),
                    resources={key.name: state for key, state in slot.store.snapshot().items()},
                    warnings=tuple(slot.warnings),
                )
                for slot in self.slots
            ),
            markers=tuple(self.timeline.markers),
        )
