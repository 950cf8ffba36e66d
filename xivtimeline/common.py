"""Common definitions and utilities for the XIV timeline simulator.

This module contains constants, enumerations, and small utility functions
shared by the timing model, the resource store, the replay engine and the
job definitions.

All durations inside the engine are integer milliseconds. Display time 0 is
the end of the countdown (the pull); timestamps in the pre-pull stage are
negative.
"""

from enum import Enum, IntEnum
from dataclasses import dataclass

# Global timing constants (in milliseconds)
SERVER_TICK_DURATION = 3000  # Server tick duration in milliseconds
ANIMATION_LOCK = 700  # Default animation lock after an instant action
GCD_MAX = 2500  # Base Global Cooldown (GCD) recast time
CASTER_TAX = 100  # Extra lock added to the end of every hard cast
COMBO_DURATION = 30_000  # Time a combo stays open after a combo action

# TimingMath constants
MIN_SPEED_SUBSTAT = 400  # Lowest speed value the published formula accepts
FPS_TAX_MINIMUM = 0.01  # Seconds added before rounding up to a frame boundary

MAX_TIMELINE_SLOTS = 4


def format_ms(ms: int) -> str:
    """
    Format integer milliseconds to a signed "mm:ss.000" string.

    Args:
        ms (int): Time in milliseconds (positive or negative)

    Returns:
        str: Formatted time string, "-" prefixed for pre-pull timestamps
    """
    sign = "-" if ms < 0 else "+"
    minutes, remainder = divmod(abs(ms), 60_000)
    seconds, milliseconds = divmod(remainder, 1000)
    return f"{sign}{minutes:02d}:{seconds:02d}.{milliseconds:03d}"


def ms_to_seconds(ms: int) -> float:
    return ms / 1000.0


def seconds_to_ms(seconds: float) -> int:
    return int(round(seconds * 1000))


class ComboFlag(IntEnum):
    """Flags indicating what an action does to the combo state.

    Attributes:
        NONE: The action does not touch the combo
        SUCCESS: The action opens (or continues) a combo
        RESET: The action closes the combo
    """

    NONE = 0
    SUCCESS = 1
    RESET = 2


class ActionType(IntEnum):
    """Category of an action, deciding GCD membership and speed substat."""

    WEAPONSKILL = 1
    SPELL = 2
    ABILITY = 3
    LIMIT_BREAK = 4


class FormatVersion(IntEnum):
    """Save format versions.

    Attributes:
        LEGACY_CASTER_TAX: Sessions saved with a fixed caster tax per cast
        FPS_TAX: Sessions whose tax is derived from the frame rate
    """

    LEGACY_CASTER_TAX = 1
    FPS_TAX = 2

    @classmethod
    def current(cls) -> "FormatVersion":
        return cls.FPS_TAX


class MarkerType(Enum):
    """Kinds of out-of-band markers shared by all timeline slots."""

    BUFF = "buff"
    UNTARGETABLE = "untargetable"
    INFO = "info"


class WarningKind(Enum):
    """Kinds of warnings recorded while a slot is simulated.

    Attributes:
        COMBO_BREAK: A combo action closed an open combo without continuing it
        OVERCAP: A gain was clamped at the resource maximum
        OVERWRITE: A still-running buff was refreshed
        TIMEOUT: A tracked buff fell off unused
        CUSTOM: Free-form warning, e.g. a cast that could not pay its cost when it ended
    """

    COMBO_BREAK = "combobreak"
    OVERCAP = "overcap"
    OVERWRITE = "overwrite"
    TIMEOUT = "timeout"
    CUSTOM = "custom"


class SkillUnavailableReason(Enum):
    """Named reasons attached to an invalid action node."""

    UNKNOWN_SKILL = "unknown skill"
    NOT_UNLOCKED = "not unlocked at this level"
    ON_COOLDOWN = "on cooldown"
    NOT_ENOUGH_RESOURCE = "resource unavailable"
    REQUIREMENTS_NOT_MET = "requirements not met"
    BROKEN_COMBO = "broken combo"


# Job IDs - aligned with FFXIV's official ClassJob enum (combat jobs only)
class JobClass(IntEnum):
    """Job IDs matching FFXIV's official ClassJob enumeration."""

    PALADIN = 19
    MONK = 20
    WARRIOR = 21
    DRAGOON = 22
    BARD = 23
    WHITE_MAGE = 24
    BLACK_MAGE = 25
    SUMMONER = 27
    SCHOLAR = 28
    NINJA = 30
    MACHINIST = 31
    DARK_KNIGHT = 32
    ASTROLOGIAN = 33
    SAMURAI = 34
    RED_MAGE = 35
    GUNBREAKER = 37
    DANCER = 38
    REAPER = 39
    SAGE = 40
    VIPER = 41
    PICTOMANCER = 42


JOB_ABBREVIATIONS = {
    "PLD": JobClass.PALADIN,
    "MNK": JobClass.MONK,
    "WAR": JobClass.WARRIOR,
    "DRG": JobClass.DRAGOON,
    "BRD": JobClass.BARD,
    "WHM": JobClass.WHITE_MAGE,
    "BLM": JobClass.BLACK_MAGE,
    "SMN": JobClass.SUMMONER,
    "SCH": JobClass.SCHOLAR,
    "NIN": JobClass.NINJA,
    "MCH": JobClass.MACHINIST,
    "DRK": JobClass.DARK_KNIGHT,
    "AST": JobClass.ASTROLOGIAN,
    "SAM": JobClass.SAMURAI,
    "RDM": JobClass.RED_MAGE,
    "GNB": JobClass.GUNBREAKER,
    "DNC": JobClass.DANCER,
    "RPR": JobClass.REAPER,
    "SGE": JobClass.SAGE,
    "VPR": JobClass.VIPER,
    "PCT": JobClass.PICTOMANCER,
}


class Role(IntEnum):
    """Role categories matching FFXIV's role system.

    Attributes:
        TANK: Tank role
        HEALER: Healer role
        DPS_MELEE: Melee DPS sub-role
        DPS_RANGED_PHYSICAL: Physical ranged DPS sub-role
        DPS_RANGED_MAGICAL: Magical ranged DPS sub-role
    """

    TANK = 1
    HEALER = 2
    DPS_MELEE = 10
    DPS_RANGED_PHYSICAL = 11
    DPS_RANGED_MAGICAL = 12


def get_role_for_job(job_id: JobClass) -> Role:
    """Returns the role (with the DPS sub-role resolved) for a given job ID.

    Args:
        job_id: The JobClass enumeration value to find the role for

    Returns:
        The Role enumeration value corresponding to the job
    """
    if job_id in [
        JobClass.PALADIN,
        JobClass.WARRIOR,
        JobClass.DARK_KNIGHT,
        JobClass.GUNBREAKER,
    ]:
        return Role.TANK
    elif job_id in [
        JobClass.WHITE_MAGE,
        JobClass.SCHOLAR,
        JobClass.ASTROLOGIAN,
        JobClass.SAGE,
    ]:
        return Role.HEALER
    elif job_id in [
        JobClass.BARD,
        JobClass.MACHINIST,
        JobClass.DANCER,
    ]:
        return Role.DPS_RANGED_PHYSICAL
    elif job_id in [
        JobClass.BLACK_MAGE,
        JobClass.SUMMONER,
        JobClass.RED_MAGE,
        JobClass.PICTOMANCER,
    ]:
        return Role.DPS_RANGED_MAGICAL
    return Role.DPS_MELEE


def uses_spell_speed(job_id: JobClass) -> bool:
    """Casters and healers scale their GCD with spell speed, everyone else with skill speed."""
    return get_role_for_job(job_id) in (Role.HEALER, Role.DPS_RANGED_MAGICAL)


@dataclass(frozen=True)
class LevelModifier:
    """Level-specific constants used by the substat formulas.

    Attributes:
        main_attribute: Base main attribute at this level
        substract: Base value of every secondary stat at this level
        division: Division factor for secondary stat calculations
    """

    main_attribute: int
    substract: int
    division: int


LEVEL_MODIFIERS = {
    70: LevelModifier(main_attribute=292, substract=364, division=900),
    80: LevelModifier(main_attribute=340, substract=380, division=1300),
    90: LevelModifier(main_attribute=390, substract=400, division=1900),
    100: LevelModifier(main_attribute=440, substract=420, division=2780),
}


class CommonResource(Enum):
    """Resources every job carries.

    The GCD is itself a one-charge cooldown whose per-use duration is the
    computed recast of the action that started it.
    """

    GCD = "GCD"
    TINCTURE = "TINCTURE"
    TINCTURE_COOLDOWN = "TINCTURE_COOLDOWN"
    SWIFTCAST = "SWIFTCAST"
    SWIFTCAST_COOLDOWN = "SWIFTCAST_COOLDOWN"


# Action IDs from the game
class ActionID(IntEnum):
    """Action IDs from FFXIV for every action the registered jobs know."""

    NONE = 0

    # General actions
    TINCTURE = 846

    # Limit breaks
    METEOR = 205
    FINAL_HEAVEN = 202

    # Role actions - Magical DPS
    SWIFTCAST = 7561

    # Black Mage actions
    FIRE = 141
    BLIZZARD = 142
    TRANSPOSE = 149
    FIRE_III = 152
    BLIZZARD_III = 154
    MANAFONT = 158
    LEY_LINES = 3573
    BLIZZARD_IV = 3576
    FIRE_IV = 3577
    TRIPLECAST = 7421
    FOUL = 7422
    XENOGLOSSY = 16507
    AMPLIFIER = 25796
    PARADOX = 25797
    HIGH_THUNDER = 36986
    FLARE_STAR = 36989

    # Samurai actions
    HAKAZE = 7477
    JINPU = 7478
    SHIFU = 7479
    YUKIKAZE = 7480
    GEKKO = 7481
    KASHA = 7482
    MIDARE_SETSUGEKKA = 7487
    HISSATSU_SHINTEN = 7490
    HAGAKURE = 7495
    MEIKYO_SHISUI = 7499
    HISSATSU_SENEI = 16481
    IKISHOTEN = 16482
    KAESHI_SETSUGEKKA = 16486
    GYOFU = 36963
