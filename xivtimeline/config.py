"""Session configuration.

``GameConfig`` is the immutable set of parameters a session is simulated
with. It is parsed from a form-shaped mapping whose values may be strings or
numbers; any unparsable value rejects the whole mapping with one
``ConfigurationError`` so no partial state is ever built from it.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from xivtimeline.common import (
    FormatVersion,
    JOB_ABBREVIATIONS,
    JobClass,
    LEVEL_MODIFIERS,
    seconds_to_ms,
    uses_spell_speed,
)
from xivtimeline.errors import ConfigurationError
from xivtimeline.job import JOBS
from xivtimeline.potency import StatCalculator
from xivtimeline.resources import ResourceOverrideData
from xivtimeline.rng import ProcMode, generate_seed
from xivtimeline.timing import TimingModel, gcd_preview

log = logging.getLogger(__name__)

LEGACY_CASTER_TAX = 0.06  # seconds, used by legacy saves that do not carry one

INTEGER_FIELDS = (
    "level",
    "spell_speed",
    "skill_speed",
    "critical_hit",
    "direct_hit",
    "determination",
    "piety",
)
FLOAT_FIELDS = (
    "animation_lock",
    "fps",
    "gcd_skill_correction",
    "time_till_first_mana_tick",
    "countdown",
)


def _parse_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_job(value: Any) -> JobClass:
    """Resolve a job from its enum name, abbreviation or ClassJob id."""
    if isinstance(value, JobClass):
        return value
    text = str(value).strip().upper()
    if text in JOB_ABBREVIATIONS:
        return JOB_ABBREVIATIONS[text]
    if text in JobClass.__members__:
        return JobClass[text]
    if text.isdigit() and int(text) in JobClass._value2member_map_:
        return JobClass(int(text))
    raise ConfigurationError(f"unknown job: {value!r}")


@dataclass(frozen=True)
class GameConfig:
    """
    Immutable per-session parameters.

    Times are stored in seconds, as entered; the ``*_ms`` properties give the
    engine's integer milliseconds.

    Attributes:
        job: Job being simulated
        level: Character level, one of 70, 80, 90, 100
        spell_speed: Spell speed substat
        skill_speed: Skill speed substat
        critical_hit: Critical hit substat
        direct_hit: Direct hit substat
        determination: Determination substat
        piety: Piety substat
        animation_lock: Animation lock of instant actions (s)
        fps: Frame rate used by the FPS tax
        gcd_skill_correction: Extra time added to every GCD recast (s)
        time_till_first_mana_tick: Delay of the first server tick after the countdown starts (s)
        countdown: Length of the countdown before the pull (s)
        random_seed: Seed token of the proc stream, empty until committed
        proc_mode: How proc checks are resolved
        initial_resource_overrides: Resource values at simulation start
        format_version: Save format the configuration was created with
        legacy_caster_tax: Fixed caster tax of legacy saves (s)
    """

    job: JobClass = JobClass.BLACK_MAGE
    level: int = 100
    spell_speed: int = 420
    skill_speed: int = 420
    critical_hit: int = 420
    direct_hit: int = 420
    determination: int = 440
    piety: int = 440
    animation_lock: float = 0.7
    fps: float = 60.0
    gcd_skill_correction: float = 0.0
    time_till_first_mana_tick: float = 1.2
    countdown: float = 5.0
    random_seed: str = ""
    proc_mode: ProcMode = ProcMode.RNG
    initial_resource_overrides: Tuple[ResourceOverrideData, ...] = field(default_factory=tuple)
    format_version: FormatVersion = FormatVersion.FPS_TAX
    legacy_caster_tax: Optional[float] = None

    @property
    def speed(self) -> int:
        """Speed substat that drives this job's GCD."""
        return self.spell_speed if uses_spell_speed(self.job) else self.skill_speed

    @property
    def is_legacy(self) -> bool:
        return self.format_version < FormatVersion.FPS_TAX

    @property
    def countdown_ms(self) -> int:
        return seconds_to_ms(self.countdown)

    @property
    def first_tick_ms(self) -> int:
        return seconds_to_ms(self.time_till_first_mana_tick)

    def with_seed(self) -> "GameConfig":
        """Return a copy with a generated seed if none was given."""
        if self.random_seed:
            return self
        return replace(self, random_seed=generate_seed())

    def timing_model(self) -> TimingModel:
        legacy_tax = None
        if self.is_legacy:
            legacy_tax = seconds_to_ms(
                LEGACY_CASTER_TAX if self.legacy_caster_tax is None else self.legacy_caster_tax
            )
        return TimingModel(
            level=self.level,
            speed=self.speed,
            fps=self.fps,
            animation_lock=seconds_to_ms(self.animation_lock),
            gcd_correction=seconds_to_ms(self.gcd_skill_correction),
            legacy_caster_tax=legacy_tax,
        )

    def stat_calculator(self) -> StatCalculator:
        return StatCalculator(self.level, self.critical_hit, self.direct_hit)

    def gcd_preview(self) -> Tuple[str, str]:
        return gcd_preview(self.level, self.speed, self.fps)

    def speed_previews(self) -> Dict[str, Tuple[str, str]]:
        """GCD previews for both substats, whichever one the job uses."""
        return {
            "spell_speed": gcd_preview(self.level, self.spell_speed, self.fps),
            "skill_speed": gcd_preview(self.level, self.skill_speed, self.fps),
        }

    def deprecation_warnings(self) -> List[str]:
        if not self.is_legacy:
            return []
        tax = LEGACY_CASTER_TAX if self.legacy_caster_tax is None else self.legacy_caster_tax
        return [
            f"This record uses the deprecated caster tax of {tax:g}s. "
            "Newer records replace it by 0.1s plus an FPS tax computed from the frame rate."
        ]

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "GameConfig":
        """
        Parse a configuration mapping.

        Args:
            raw: Mapping of field names to strings or numbers; missing fields
                take their defaults

        Returns:
            GameConfig: Parsed configuration

        Raises:
            ConfigurationError: A numeric field is unparsable, the job is
                unknown or not simulated, or the level is unsupported
        """
        values: Dict[str, Any] = {}
        bad_fields = []
        for name in INTEGER_FIELDS + FLOAT_FIELDS:
            if name not in raw:
                continue
            number = _parse_number(raw[name])
            if number is None or (name in INTEGER_FIELDS and not number.is_integer()):
                bad_fields.append(name)
                continue
            values[name] = int(number) if name in INTEGER_FIELDS else number

        overrides = []
        for index, entry in enumerate(raw.get("initial_resource_overrides") or ()):
            stacks = _parse_number(entry.get("stacks", 0))
            timer = _parse_number(entry.get("timer", 0))
            if stacks is None or timer is None or "type" not in entry:
                bad_fields.append(f"initial_resource_overrides[{index}]")
                continue
            overrides.append(
                ResourceOverrideData(
                    resource=str(entry["type"]),
                    stacks=int(stacks),
                    timer=seconds_to_ms(timer),
                    enabled=bool(entry.get("enabled", True)),
                )
            )

        legacy_tax = None
        if raw.get("caster_tax") is not None:
            legacy_tax = _parse_number(raw["caster_tax"])
            if legacy_tax is None:
                bad_fields.append("caster_tax")

        version = _parse_number(raw.get("format_version", int(FormatVersion.current())))
        if version is None:
            bad_fields.append("format_version")

        if bad_fields:
            raise ConfigurationError(f"some inputs are not numbers: {', '.join(bad_fields)}")

        job = parse_job(raw.get("job", cls.job))
        if job not in JOBS:
            raise ConfigurationError(f"job {job.name} is not supported")
        if values.get("level", cls.level) not in LEVEL_MODIFIERS:
            raise ConfigurationError(f"unsupported level: {values['level']}")
        if values.get("countdown", 0) < 0:
            raise ConfigurationError("countdown must not be negative")

        try:
            proc_mode = ProcMode.parse(raw.get("proc_mode", ProcMode.RNG))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        format_version = FormatVersion.LEGACY_CASTER_TAX
        if version >= FormatVersion.FPS_TAX:
            format_version = FormatVersion.FPS_TAX

        return cls(
            job=job,
            random_seed=str(raw.get("random_seed") or ""),
            proc_mode=proc_mode,
            initial_resource_overrides=tuple(overrides),
            format_version=format_version,
            legacy_caster_tax=legacy_tax if format_version < FormatVersion.FPS_TAX else None,
            **values,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the mapping ``from_dict`` accepts."""
        data: Dict[str, Any] = {"job": self.job.name}
        for name in INTEGER_FIELDS + FLOAT_FIELDS:
            data[name] = getattr(self, name)
        data["random_seed"] = self.random_seed
        data["proc_mode"] = self.proc_mode.value
        data["initial_resource_overrides"] = [
            {
                "type": override.resource,
                "stacks": override.stacks,
                "timer": override.timer / 1000,
                "enabled": override.enabled,
            }
            for override in self.initial_resource_overrides
        ]
        data["format_version"] = int(self.format_version)
        if self.is_legacy:
            data["caster_tax"] = (
                LEGACY_CASTER_TAX if self.legacy_caster_tax is None else self.legacy_caster_tax
            )
        return data
