"""Exception and report types of the simulator.

Only truly invalid inputs raise. Expected domain conditions (a cooldown that
is not ready, an overcapped gauge, an inconsistent override set) are carried
as data so callers can display them.
"""

from dataclasses import dataclass
from typing import Tuple


class ConfigurationError(ValueError):
    """A configuration could not be parsed; no session state was created."""


class RebuildInProgressError(RuntimeError):
    """A replay was requested while another replay was still running."""


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of cross-resource validation of initial resource overrides.

    Attributes:
        errors: One message per problem found, in discovery order
    """

    errors: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    def __str__(self) -> str:
        if self.ok:
            return "ok"
        return "; ".join(self.errors)
