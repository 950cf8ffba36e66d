"""
Resource Store
==============

Per-slot runtime values of gauges, buffs, stack timers and cooldowns.

Every job declares a closed enumeration of resource identifiers, each with a
static ``ResourceInfo`` descriptor. A ``ResourceStore`` built from those
descriptors holds one ``ResourceState`` per identifier and enforces the
descriptor's bounds on every mutation: values are clamped rather than
rejected, and clamping or refreshing a running buff leaves a warning behind
instead of failing.

Resource kinds:
--------------
- GAUGE: an amount in [0, max], optionally dropping to 0 after a timeout
- TIMED_BUFF: stacks with a timer; expires when the timer runs out
- STACK_TIMER: gains one stack every period while its gating resource is active
- COOLDOWN: time until all charges are back; available charges are derived

Derived resources (e.g. a stance implied by either of two gauges) are pure
functions of the base resources and are recomputed after every mutation.
"""

import copy
import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from itertools import chain
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from xivtimeline.common import WarningKind
from xivtimeline.errors import ValidationReport
from xivtimeline.task import update_step_size

log = logging.getLogger(__name__)


class ResourceKind(Enum):
    GAUGE = "gauge"
    TIMED_BUFF = "timed_buff"
    STACK_TIMER = "stack_timer"
    COOLDOWN = "cooldown"


@dataclass(frozen=True)
class ResourceInfo:
    """Static descriptor of one resource.

    Attributes:
        kind: Resource kind, deciding how the timer behaves
        max_value: Maximum amount (maximum charges for cooldowns)
        default_value: Amount at simulation start (cooldowns start full)
        max_timeout: Duration of the timer in ms, -1 when the resource has none
        cd_per_stack: Recast of one charge in ms (cooldowns only)
        requires: Resource that must be active for a stack timer to run
        snapshot: Whether the resource is captured as a buff by action snapshots
        warn_on_overcap: Record a warning when a gain is clamped at max
        warn_on_overwrite: Record a warning when the buff is refreshed while running
        warn_on_timeout: Record a warning when the buff expires
    """

    kind: ResourceKind
    max_value: int = 1
    default_value: int = 0
    max_timeout: int = -1
    cd_per_stack: int = 0
    requires: Optional[Enum] = None
    snapshot: bool = False
    warn_on_overcap: bool = False
    warn_on_overwrite: bool = False
    warn_on_timeout: bool = False

    @property
    def has_timeout(self) -> bool:
        return self.kind == ResourceKind.COOLDOWN or self.max_timeout >= 0

    @property
    def max_timer(self) -> int:
        if self.kind == ResourceKind.COOLDOWN:
            return self.max_value * self.cd_per_stack
        return max(self.max_timeout, 0)


def gauge(max_value: int, default_value: int = 0, **kwargs) -> ResourceInfo:
    return ResourceInfo(ResourceKind.GAUGE, max_value, default_value, **kwargs)


def timed_buff(duration: int, max_stacks: int = 1, **kwargs) -> ResourceInfo:
    return ResourceInfo(ResourceKind.TIMED_BUFF, max_stacks, max_timeout=duration, **kwargs)


def stack_timer(max_value: int, period: int, requires: Optional[Enum] = None, **kwargs) -> ResourceInfo:
    return ResourceInfo(
        ResourceKind.STACK_TIMER, max_value, max_timeout=period, requires=requires, **kwargs
    )


def cooldown(cd_per_stack: int, max_stacks: int = 1) -> ResourceInfo:
    return ResourceInfo(
        ResourceKind.COOLDOWN, max_stacks, default_value=max_stacks, cd_per_stack=cd_per_stack
    )


@dataclass
class ResourceState:
    """Runtime value of one resource.

    Attributes:
        amount: Current amount, stacks or available charges
        timer: Remaining time in ms; meaningless for kinds without a timeout
        enabled: Flag for buffs that can be present but inactive
        per_charge: Recast of the charge currently recovering (cooldowns only)
    """

    amount: int = 0
    timer: int = 0
    enabled: bool = True
    per_charge: int = 0


@dataclass(frozen=True)
class ResourceWarning:
    kind: WarningKind
    resource: Enum
    message: str = ""


@dataclass(frozen=True)
class ResourceOverrideData:
    """User-declared initial value of one resource at simulation start.

    Attributes:
        resource: Resource identifier name (e.g. "ASTRAL_FIRE")
        stacks: Amount or stacks; ignored for cooldowns
        timer: Timer in ms; time until all charges are back for cooldowns
        enabled: Enabled flag for buffs such as Ley Lines
    """

    resource: str
    stacks: int = 0
    timer: int = 0
    enabled: bool = True


@dataclass(frozen=True)
class ExclusiveRule:
    """At most one of ``resources`` may be positive."""

    resources: Tuple[Enum, ...]

    def check(self, store: "ResourceStore") -> Optional[str]:
        active = [key.name for key in self.resources if store.amount(key) > 0]
        if len(active) > 1:
            return f"{' and '.join(active)} cannot both be active"
        return None


@dataclass(frozen=True)
class RequiresRule:
    """A positive ``resource`` (or its timer) needs ``requires`` to be active."""

    resource: Enum
    requires: Enum
    on_timer: bool = False

    def check(self, store: "ResourceStore") -> Optional[str]:
        if self.on_timer:
            value = store.timer(self.resource)
            label = f"{self.resource.name} timer"
        else:
            value = store.amount(self.resource)
            label = self.resource.name
        if value > 0 and store.amount(self.requires) <= 0:
            return f"{label} requires {self.requires.name}"
        return None


DerivedFunction = Callable[["ResourceStore"], int]


class ResourceStore:
    """
    Mapping of resource identifiers to runtime values for one slot.

    Derived functions may only read base resources.

    Attributes:
        infos (Dict[Enum, ResourceInfo]): Static descriptors by identifier
        derived (Dict[Enum, DerivedFunction]): Derived resources by identifier
        warnings (List[ResourceWarning]): Warnings not yet collected by the owner
    """

    def __init__(
        self,
        infos: Dict[Enum, ResourceInfo],
        derived: Optional[Dict[Enum, DerivedFunction]] = None,
    ):
        self.infos = dict(infos)
        self.derived = dict(derived or {})
        self._by_name: Dict[str, Enum] = {}
        self._check_descriptors()

        self._states: Dict[Enum, ResourceState] = {
            key: self._default_state(info) for key, info in self.infos.items()
        }
        self._derived_values: Dict[Enum, int] = {}
        self.warnings: List[ResourceWarning] = []
        self._refresh_derived()

    def _check_descriptors(self):
        for key in chain(self.infos, self.derived):
            if not isinstance(key, Enum):
                raise ValueError(f"resource identifier {key!r} is not an enum member")
            if key.name in self._by_name:
                raise ValueError(f"duplicate resource name {key.name}")
            self._by_name[key.name] = key

        for key, info in self.infos.items():
            if key in self.derived:
                raise ValueError(f"{key.name} is declared both stored and derived")
            if info.kind == ResourceKind.COOLDOWN and info.cd_per_stack <= 0:
                raise ValueError(f"cooldown {key.name} needs a positive recast")
            if not 0 <= info.default_value <= info.max_value:
                raise ValueError(f"default of {key.name} is outside [0, {info.max_value}]")
            if info.requires is not None and info.requires not in self._by_name.values():
                raise ValueError(f"{key.name} requires unknown resource {info.requires.name}")

    @staticmethod
    def _default_state(info: ResourceInfo) -> ResourceState:
        if info.kind == ResourceKind.COOLDOWN:
            return ResourceState(amount=info.max_value, per_charge=info.cd_per_stack)
        timer = info.max_timeout if info.kind == ResourceKind.TIMED_BUFF and info.default_value > 0 else 0
        return ResourceState(amount=info.default_value, timer=timer)

    @staticmethod
    def _charges(info: ResourceInfo, state: ResourceState) -> int:
        if state.timer <= 0:
            return info.max_value
        per_charge = state.per_charge or info.cd_per_stack
        return max(0, info.max_value - math.ceil(state.timer / per_charge))

    def _refresh_derived(self):
        self._derived_values = {key: int(fn(self)) for key, fn in self.derived.items()}

    def _warn(self, kind: WarningKind, key: Enum, message: str = ""):
        self.warnings.append(ResourceWarning(kind, key, message))

    def __contains__(self, key) -> bool:
        return key in self._states or key in self.derived

    def key_for(self, name: str) -> Enum:
        """Resolve a resource identifier from its name.

        Raises:
            KeyError: No resource of that name exists for this job
        """
        return self._by_name[name]

    def get(self, key: Enum) -> ResourceState:
        """Return a copy of the resource's state."""
        if key in self.derived:
            return ResourceState(amount=self._derived_values[key])
        return replace(self._states[key])

    def amount(self, key: Enum) -> int:
        if key in self.derived:
            return self._derived_values[key]
        return self._states[key].amount

    def timer(self, key: Enum) -> int:
        if key in self.derived:
            return 0
        return self._states[key].timer

    def enabled(self, key: Enum) -> bool:
        if key in self.derived:
            return True
        return self._states[key].enabled

    def is_active(self, key: Enum) -> bool:
        return self.amount(key) > 0

    def available(self, key: Enum, amount: int = 1) -> bool:
        return self.amount(key) >= amount

    def set(
        self,
        key: Enum,
        amount: Optional[int] = None,
        timer: Optional[int] = None,
        enabled: Optional[bool] = None,
    ):
        """
        Set a resource, clamping to the descriptor's range.

        Args:
            key: Resource identifier (derived resources are read-only)
            amount: New amount, clamped to [0, max]; overcap leaves a warning
            timer: New timer, clamped to [0, max timer]
            enabled: New enabled flag
        """
        if key in self.derived:
            raise KeyError(f"{key.name} is derived and cannot be set")
        info = self.infos[key]
        state = self._states[key]

        if amount is not None and info.kind != ResourceKind.COOLDOWN:
            if amount > info.max_value:
                if info.warn_on_overcap:
                    self._warn(WarningKind.OVERCAP, key)
                amount = info.max_value
            state.amount = max(0, amount)
        if timer is not None:
            state.timer = min(max(0, timer), info.max_timer) if info.has_timeout else 0
        if enabled is not None:
            state.enabled = enabled
        if info.kind == ResourceKind.COOLDOWN:
            state.amount = self._charges(info, state)

        self._refresh_derived()

    def gain(self, key: Enum, amount: int = 1):
        self.set(key, amount=self.amount(key) + amount)

    def consume(self, key: Enum, amount: int = 1) -> bool:
        """Spend ``amount``; returns False (and changes nothing) if not enough is available."""
        current = self.amount(key)
        if current < amount:
            return False
        info = self.infos[key]
        if current - amount == 0 and info.kind == ResourceKind.TIMED_BUFF:
            self.set(key, amount=0, timer=0)
        else:
            self.set(key, amount=current - amount)
        return True

    def grant(self, key: Enum, stacks: Optional[int] = None, duration: Optional[int] = None):
        """(Re)apply a timed buff at full duration, warning when a running buff is overwritten."""
        info = self.infos[key]
        if self.amount(key) > 0 and info.warn_on_overwrite:
            self._warn(WarningKind.OVERWRITE, key)
        self.set(
            key,
            amount=info.max_value if stacks is None else stacks,
            timer=info.max_timeout if duration is None else duration,
            enabled=True,
        )

    def remove(self, key: Enum):
        self.set(key, amount=0, timer=0)

    def use_charge(self, key: Enum, recast: Optional[int] = None) -> bool:
        """
        Spend one charge of a cooldown and start (or extend) its recovery.

        Args:
            key: Cooldown identifier
            recast: Recast of this use in ms; defaults to the descriptor's recast

        Returns:
            bool: False if no charge was available
        """
        info = self.infos[key]
        if info.kind != ResourceKind.COOLDOWN:
            raise ValueError(f"{key.name} is not a cooldown")
        state = self._states[key]
        if self._charges(info, state) <= 0:
            return False

        per_charge = info.cd_per_stack if recast is None else recast
        if per_charge > 0:
            if state.timer <= 0:
                state.per_charge = per_charge
            state.timer += state.per_charge
        state.amount = self._charges(info, state)
        self._refresh_derived()
        return True

    def tick(self, delta_time: int):
        """
        Advance every running timer by ``delta_time`` and fire expiry transitions.

        Args:
            delta_time: Time in milliseconds to advance
        """
        if delta_time <= 0:
            return
        for key, info in self.infos.items():
            state = self._states[key]
            if info.kind == ResourceKind.COOLDOWN:
                if state.timer > 0:
                    state.timer = max(0, state.timer - delta_time)
                    state.amount = self._charges(info, state)
            elif info.kind == ResourceKind.STACK_TIMER:
                self._tick_stack_timer(key, info, state, delta_time)
            elif info.has_timeout and state.amount > 0 and state.timer > 0:
                state.timer -= delta_time
                if state.timer <= 0:
                    state.amount = 0
                    state.timer = 0
                    if info.warn_on_timeout:
                        self._warn(WarningKind.TIMEOUT, key)
        self._refresh_derived()

    def _tick_stack_timer(self, key: Enum, info: ResourceInfo, state: ResourceState, delta_time: int):
        if info.requires is not None and self.amount(info.requires) <= 0:
            state.timer = 0
            return
        if state.timer <= 0:
            state.timer = info.max_timeout
        while delta_time >= state.timer:
            delta_time -= state.timer
            if state.amount >= info.max_value:
                if info.warn_on_overcap:
                    self._warn(WarningKind.OVERCAP, key)
            else:
                state.amount += 1
            state.timer = info.max_timeout
        state.timer -= delta_time

    def calc_step_size(self) -> Optional[int]:
        """
        Time until the next expiry, recovered charge or gained stack.

        Returns:
            Optional[int]: Milliseconds until the next transition, or None
        """
        step_size = None
        for key, info in self.infos.items():
            state = self._states[key]
            next_event = None
            if info.kind == ResourceKind.COOLDOWN:
                if state.timer > 0:
                    per_charge = state.per_charge or info.cd_per_stack
                    next_event = state.timer - (math.ceil(state.timer / per_charge) - 1) * per_charge
            elif info.kind == ResourceKind.STACK_TIMER:
                if info.requires is None or self.amount(info.requires) > 0:
                    next_event = state.timer if state.timer > 0 else info.max_timeout
            elif info.has_timeout and state.amount > 0 and state.timer > 0:
                next_event = state.timer
            step_size = update_step_size(step_size, next_event)
        return step_size

    def apply_overrides(self, overrides: Iterable[ResourceOverrideData]):
        """Seed the store from initial override data, clamping every value."""
        for override in overrides:
            key = self.key_for(override.resource)
            info = self.infos[key]
            state = self._states[key]
            if info.kind == ResourceKind.COOLDOWN:
                state.per_charge = info.cd_per_stack
                state.timer = min(max(0, override.timer), info.max_timer)
                state.amount = self._charges(info, state)
                continue

            stacks = override.stacks
            if info.kind == ResourceKind.TIMED_BUFF and stacks <= 0 and override.timer > 0:
                stacks = 1
            state.amount = min(max(0, stacks), info.max_value)
            state.timer = min(max(0, override.timer), info.max_timer) if info.has_timeout else 0
            state.enabled = override.enabled
        self._refresh_derived()

    def validate_overrides(
        self,
        overrides: Iterable[ResourceOverrideData],
        rules: Iterable = (),
    ) -> ValidationReport:
        """
        Check override data on a staging copy; this store is never touched.

        Args:
            overrides: Override data to check
            rules: Cross-resource rules (``ExclusiveRule``, ``RequiresRule``)

        Returns:
            ValidationReport: Every problem found, empty when the set can be committed
        """
        errors: List[str] = []
        seen = set()
        accepted = []
        for override in overrides:
            try:
                key = self.key_for(override.resource)
            except KeyError:
                errors.append(f"unknown resource {override.resource}")
                continue
            if key in self.derived:
                errors.append(f"{key.name} is derived and cannot be overridden")
                continue
            if key in seen:
                errors.append(f"duplicate override for {key.name}")
                continue
            seen.add(key)

            info = self.infos[key]
            if info.kind == ResourceKind.COOLDOWN:
                if not 0 <= override.timer <= info.max_timer:
                    errors.append(f"{key.name} timer must be within [0, {info.max_timer / 1000:g}s]")
            else:
                if not 0 <= override.stacks <= info.max_value:
                    errors.append(f"{key.name} amount must be within [0, {info.max_value}]")
                if info.has_timeout and not 0 <= override.timer <= info.max_timer:
                    errors.append(f"{key.name} timer must be within [0, {info.max_timer / 1000:g}s]")
            accepted.append(override)

        staging = self.copy()
        staging.apply_overrides(accepted)
        for rule in rules:
            message = rule.check(staging)
            if message:
                errors.append(message)

        if errors:
            log.debug("override validation failed: %s", errors)
        return ValidationReport(tuple(errors))

    def drain_warnings(self) -> List[ResourceWarning]:
        warnings, self.warnings = self.warnings, []
        return warnings

    def snapshot(self) -> Dict[Enum, ResourceState]:
        """Copies of every resource's state, derived resources included."""
        values = {key: replace(state) for key, state in self._states.items()}
        for key, value in self._derived_values.items():
            values[key] = ResourceState(amount=value)
        return values

    def copy(self) -> "ResourceStore":
        other = copy.copy(self)
        other._states = copy.deepcopy(self._states)
        other._derived_values = dict(self._derived_values)
        other.warnings = list(self.warnings)
        return other
