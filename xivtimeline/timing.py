"""Timing math: speed substats and frame rate to GCD, cast and lock durations.

The pre-tax formula follows the game's published speed step function, which
is piecewise by level bracket (see ``LEVEL_MODIFIERS``). Actions can only
resolve on a rendered frame, so every duration is additionally rounded up to
the next frame boundary after a small fixed minimum ("FPS tax").

The free functions here work in seconds, matching how the game shows GCD
values. ``TimingModel`` binds them to one session and hands out integer
milliseconds for the simulator.
"""

import logging
import math
from typing import Optional, Tuple

from xivtimeline.common import (
    ANIMATION_LOCK,
    CASTER_TAX,
    FPS_TAX_MINIMUM,
    GCD_MAX,
    LEVEL_MODIFIERS,
    MIN_SPEED_SUBSTAT,
    ms_to_seconds,
    seconds_to_ms,
)

log = logging.getLogger(__name__)

NOT_APPLICABLE = "n/a"


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not math.isnan(value)


def pre_tax_gcd(
    level: int,
    speed: float,
    base_recast: float = 2.5,
    speed_modifier: Optional[int] = None,
) -> Optional[float]:
    """Compute the speed-adjusted duration of a GCD (or cast) before the FPS tax.

    Args:
        level: Character level, one of the brackets in ``LEVEL_MODIFIERS``
        speed: Spell speed or skill speed substat
        base_recast: Base duration in seconds
        speed_modifier: Optional haste percentage (e.g. 15 for Ley Lines)

    Returns:
        Duration in seconds truncated to two decimals, or None when the inputs
        are outside the formula's domain (unknown level, NaN, speed below the
        substat floor, haste outside [0, 100)).
    """
    if level not in LEVEL_MODIFIERS or not _is_number(speed) or not _is_number(base_recast):
        return None
    if speed < MIN_SPEED_SUBSTAT or base_recast < 0:
        return None
    haste = 0 if speed_modifier is None else speed_modifier
    if not _is_number(haste) or not 0 <= haste < 100:
        return None

    level_mod = LEVEL_MODIFIERS[level]
    speed_value = math.floor(130 * (speed - level_mod.substract) / level_mod.division)
    base_ms = int(round(base_recast * 1000))

    gcd_ms = (1000 - speed_value) * base_ms // 1000
    gcd_ms = math.floor(gcd_ms * (100 - haste) / 100)
    return (gcd_ms // 10) / 100


def after_fps_tax(fps: float, duration: Optional[float]) -> Optional[float]:
    """Round a duration up to the frame boundary after the minimum tax.

    Args:
        fps: Frame rate the action is simulated at
        duration: Pre-tax duration in seconds

    Returns:
        Taxed duration in seconds, or None when fps or duration is unusable
    """
    if not _is_number(fps) or fps <= 0 or duration is None or not _is_number(duration):
        return None
    # rounding guards against float noise pushing an exact frame count up by one
    frames = math.ceil(round((duration + FPS_TAX_MINIMUM) * fps, 6))
    return frames / fps


def gcd_preview(
    level: int,
    speed: float,
    fps: float,
    speed_modifier: Optional[int] = None,
) -> Tuple[str, str]:
    """Format the pre-tax and taxed 2.5s GCD for display, "n/a" when unusable."""
    if not _is_number(level) or not _is_number(speed) or not _is_number(fps):
        return NOT_APPLICABLE, NOT_APPLICABLE
    gcd = pre_tax_gcd(int(level), speed, 2.5, speed_modifier)
    if gcd is None:
        return NOT_APPLICABLE, NOT_APPLICABLE
    taxed = after_fps_tax(fps, gcd)
    if taxed is None:
        return f"{gcd:.2f}", NOT_APPLICABLE
    return f"{gcd:.2f}", f"{taxed:.3f}"


class TimingModel:
    """
    Session-bound timing model producing millisecond durations.

    In the current save format every duration is FPS-taxed, a hard cast locks
    for its taxed cast time plus ``CASTER_TAX`` and instants lock for the taxed
    animation lock. Sessions saved in the legacy format skip the FPS tax and
    add their fixed caster tax to every cast instead.

    Attributes:
        level: Character level
        speed: Speed substat relevant for the job (spell or skill speed)
        fps: Simulated frame rate
        animation_lock: Untaxed animation lock of instant actions (ms)
        gcd_correction: Extra time added to every GCD recast (ms)
        legacy_caster_tax: Fixed caster tax of legacy sessions (ms), or None
    """

    def __init__(
        self,
        level: int,
        speed: float,
        fps: float = 60,
        animation_lock: int = ANIMATION_LOCK,
        gcd_correction: int = 0,
        legacy_caster_tax: Optional[int] = None,
    ):
        self.level = level
        self.speed = speed
        self.fps = fps
        self.animation_lock = animation_lock
        self.gcd_correction = gcd_correction
        self.legacy_caster_tax = legacy_caster_tax

        if pre_tax_gcd(level, speed) is None:
            log.warning(
                "speed %s at level %s is outside the GCD formula, using base durations",
                speed,
                level,
            )
        if not self.is_legacy and after_fps_tax(fps, 0) is None:
            log.warning("frame rate %s is unusable, FPS tax disabled", fps)

    @property
    def is_legacy(self) -> bool:
        return self.legacy_caster_tax is not None

    def _speed_adjusted(self, base: int, haste: int) -> int:
        value = pre_tax_gcd(self.level, self.speed, ms_to_seconds(base), haste)
        if value is None:
            return base
        return seconds_to_ms(value)

    def _taxed(self, duration: int) -> int:
        if self.is_legacy or duration <= 0:
            return duration
        value = after_fps_tax(self.fps, ms_to_seconds(duration))
        if value is None:
            return duration
        return seconds_to_ms(value)

    def cast_time(self, base_cast: int, haste: int = 0) -> int:
        """Cast time of a hard cast; 0 stays 0 for instants."""
        if base_cast <= 0:
            return 0
        return self._taxed(self._speed_adjusted(base_cast, haste))

    def gcd_recast(self, base_recast: int = GCD_MAX, haste: int = 0) -> int:
        """Recast of a GCD action including the configured GCD correction."""
        return self._taxed(self._speed_adjusted(base_recast, haste)) + self.gcd_correction

    def cast_lock(self, cast_time: int) -> int:
        """Lock caused by a hard cast of the given (already adjusted) cast time."""
        if self.is_legacy:
            return cast_time + self.legacy_caster_tax
        return cast_time + CASTER_TAX

    def instant_lock(self, animation_lock: Optional[int] = None) -> int:
        """Lock caused by an instant action."""
        lock = self.animation_lock if animation_lock is None else animation_lock
        return self._taxed(lock)
