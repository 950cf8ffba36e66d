"""
Timeline: the authoritative script the simulator replays.

A timeline holds one ordered list of ``ActionNode`` per slot plus a shared set
of ``Marker`` objects (party buff windows, untargetable windows, notes) that
apply to every slot. Nodes are kept ordered by requested time; nodes at the
same requested time keep their insertion order.

Nodes are immutable. The replay engine replaces a node with a resolved copy
(``dataclasses.replace``) whenever it re-resolves it.
"""

import bisect
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from xivtimeline.common import (
    ActionID,
    MAX_TIMELINE_SLOTS,
    MarkerType,
    SkillUnavailableReason,
    format_ms,
)
from xivtimeline.potency import Potency

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionNode:
    """
    One scripted action and, once resolved, everything derived from it.

    Attributes:
        skill_id: Action to use
        requested_time: Display time the user asked for (ms)
        target_count: Number of targets hit
        seq: Insertion sequence number, breaking ties between equal times
        resolved: Whether the fields below reflect the current replay
        start_time: Time the action actually started (after lock and GCD waits)
        cast_time: Adjusted cast time, 0 for instants
        lock_duration: Time the slot is locked after start
        recast_duration: Recast started by the action (GCD or cooldown)
        is_spell_cast: Whether the action was hard cast
        snapshot_time: Time buffs were captured
        application_time: Time the effect visibly lands
        buffs: Self buffs captured at snapshot
        party_buffs: Party buffs captured at snapshot
        invalid_reasons: Empty for valid nodes
        procs: Procs that fired when the action resolved
        potency: Potency inputs, None for invalid or potency-less actions
    """

    skill_id: ActionID
    requested_time: int
    target_count: int = 1
    seq: int = 0
    resolved: bool = False
    start_time: Optional[int] = None
    cast_time: int = 0
    lock_duration: int = 0
    recast_duration: int = 0
    is_spell_cast: bool = False
    snapshot_time: Optional[int] = None
    application_time: Optional[int] = None
    buffs: Tuple[str, ...] = ()
    party_buffs: Tuple[str, ...] = ()
    invalid_reasons: Tuple[SkillUnavailableReason, ...] = ()
    procs: Tuple[str, ...] = ()
    potency: Optional[Potency] = None

    @property
    def is_valid(self) -> bool:
        return self.resolved and not self.invalid_reasons

    @property
    def relative_snapshot_time(self) -> Optional[int]:
        if self.snapshot_time is None or self.start_time is None:
            return None
        return self.snapshot_time - self.start_time

    @property
    def sort_key(self) -> Tuple[int, int]:
        return self.requested_time, self.seq

    def has_buff(self, name: str) -> bool:
        return name in self.buffs

    def unresolved(self) -> "ActionNode":
        """Copy keeping only the scripted inputs."""
        return ActionNode(self.skill_id, self.requested_time, self.target_count, self.seq)

    def __repr__(self):
        start = "?" if self.start_time is None else format_ms(self.start_time)
        state = "valid" if self.is_valid else ",".join(r.value for r in self.invalid_reasons) or "pending"
        return f"ActionNode({self.skill_id.name} @ {start}, {state})"


@dataclass(frozen=True)
class Marker:
    """
    Out-of-band annotation shared by all slots.

    Attributes:
        time: Start of the window (ms)
        duration: Length of the window (ms), 0 for point markers
        marker_type: What the window means
        description: Free text shown to the user
        buff: Party buff name for buff markers
    """

    time: int
    duration: int
    marker_type: MarkerType
    description: str = ""
    buff: Optional[str] = None

    def covers(self, time: int) -> bool:
        return self.time <= time < self.time + self.duration

    def to_dict(self) -> Dict:
        return {
            "time": self.time,
            "duration": self.duration,
            "type": self.marker_type.value,
            "description": self.description,
            "buff": self.buff,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Marker":
        return cls(
            time=int(data["time"]),
            duration=int(data.get("duration", 0)),
            marker_type=MarkerType(data.get("type", MarkerType.INFO.value)),
            description=data.get("description", ""),
            buff=data.get("buff"),
        )


class Timeline:
    """
    Ordered multi-slot sequence of action nodes plus shared markers.

    Attributes:
        markers (List[Marker]): Markers shared by every slot
        max_slots (int): Maximum number of slots
    """

    def __init__(self, markers: Optional[List[Marker]] = None, max_slots: int = MAX_TIMELINE_SLOTS):
        self.max_slots = max_slots
        self.markers: List[Marker] = list(markers or [])
        self._slots: List[List[ActionNode]] = [[]]
        self._next_seq = 0

    @property
    def slot_count(self) -> int:
        return len(self._slots)

    def nodes(self, slot: int) -> Tuple[ActionNode, ...]:
        return tuple(self._slots[slot])

    def insert_node(self, slot: int, skill_id: ActionID, time: int, target_count: int = 1) -> int:
        """
        Insert a new unresolved node in time order.

        Args:
            slot: Slot index
            skill_id: Action to use
            time: Requested display time (ms)
            target_count: Number of targets

        Returns:
            int: Index of the new node in its slot
        """
        node = ActionNode(skill_id, time, max(1, target_count), self._next_seq)
        self._next_seq += 1
        nodes = self._slots[slot]
        index = bisect.bisect_right([n.sort_key for n in nodes], node.sort_key)
        nodes.insert(index, node)
        return index

    def delete_node(self, slot: int, index: int) -> ActionNode:
        """Remove and return the node at ``index``."""
        return self._slots[slot].pop(index)

    def replace_node(self, slot: int, index: int, node: ActionNode):
        self._slots[slot][index] = node

    def invalidate_from(self, slot: int, index: int):
        """Drop the resolution of every node from ``index`` on."""
        nodes = self._slots[slot]
        for i in range(index, len(nodes)):
            nodes[i] = nodes[i].unresolved()

    def add_slot(self) -> Optional[int]:
        """Append an empty slot; returns its index, or None at the slot limit."""
        if len(self._slots) >= self.max_slots:
            return None
        self._slots.append([])
        return len(self._slots) - 1

    def clone_slot(self, slot: int) -> Optional[int]:
        """Append a copy of ``slot``; returns its index, or None at the slot limit."""
        if len(self._slots) >= self.max_slots:
            return None
        self._slots.append([node.unresolved() for node in self._slots[slot]])
        return len(self._slots) - 1

    def remove_slot(self, slot: int) -> bool:
        """Remove a slot; the last remaining slot cannot be removed."""
        if len(self._slots) <= 1:
            return False
        del self._slots[slot]
        return True

    def add_marker(self, marker: Marker):
        self.markers.append(marker)
        self.markers.sort(key=lambda m: m.time)

    def delete_marker(self, marker: Marker) -> bool:
        if marker in self.markers:
            self.markers.remove(marker)
            return True
        return False

    def party_buffs_at(self, time: int) -> Tuple[str, ...]:
        return tuple(
            m.buff
            for m in self.markers
            if m.marker_type == MarkerType.BUFF and m.buff and m.covers(time)
        )

    def is_untargetable(self, time: int) -> bool:
        return any(m.marker_type == MarkerType.UNTARGETABLE and m.covers(time) for m in self.markers)

    def to_dict(self) -> Dict:
        """
        Convert the timeline to its save representation.

        Returns:
            Dict: Slots as lists of ``{ACTION_NAME: {"time": ms, "targets": n}}``
        """
        return {
            "slots": [
                [
                    {node.skill_id.name: {"time": node.requested_time, "targets": node.target_count}}
                    for node in nodes
                ]
                for nodes in self._slots
            ],
            "markers": [marker.to_dict() for marker in self.markers],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Timeline":
        """
        Create a timeline from its save representation.

        Unknown action names are skipped with a warning.
        """
        timeline = cls(markers=[Marker.from_dict(m) for m in data.get("markers", [])])
        slots = data.get("slots") or [[]]
        for slot, entries in enumerate(slots[: timeline.max_slots]):
            if slot > 0:
                timeline.add_slot()
            for entry in entries:
                for action_name, details in entry.items():
                    action_id = ActionID.__members__.get(action_name)
                    if action_id is None:
                        log.warning("skipping unknown action %s in slot %d", action_name, slot)
                        continue
                    timeline.insert_node(
                        slot, action_id, int(details["time"]), int(details.get("targets", 1))
                    )
        return timeline
