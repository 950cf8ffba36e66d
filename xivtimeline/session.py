"""
Session: committed configuration, replay engine and the save format.

A save file is a JSON object::

    {
        "format_version": 2,
        "config": {... GameConfig.to_dict() ...},
        "timeline": {... Timeline.to_dict() ...}
    }

Files written before the FPS tax existed carry no ``format_version`` (or
version 1) and a fixed ``caster_tax`` inside the config. They still load, in
legacy timing mode, with a deprecation warning.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from xivtimeline.common import FormatVersion
from xivtimeline.config import GameConfig
from xivtimeline.errors import ValidationReport
from xivtimeline.game_state import GameState
from xivtimeline.job import get_job
from xivtimeline.timeline import Timeline

log = logging.getLogger(__name__)


class Session:
    """
    Owner of the committed configuration and the game state built from it.

    Attributes:
        config (GameConfig): Committed configuration
        state (GameState): Simulator built from ``config``
        warnings (List[str]): Non-blocking messages to surface (deprecated formats)
    """

    def __init__(self, config: Optional[GameConfig] = None, timeline: Optional[Timeline] = None):
        self.config = (config or GameConfig()).with_seed()
        self.state = GameState(self.config, timeline)
        self.warnings: List[str] = self.config.deprecation_warnings()

    @property
    def timeline(self) -> Timeline:
        return self.state.timeline

    def apply_config(self, raw: Union[GameConfig, Mapping[str, Any]]) -> ValidationReport:
        """
        Parse, validate and commit a configuration ("apply and reset").

        The new game state keeps the fight's markers but starts from an empty
        script.

        Args:
            raw: Parsed configuration or a form-shaped mapping

        Returns:
            ValidationReport: Override consistency problems; when not ok, the
            previous configuration and state are left untouched

        Raises:
            ConfigurationError: The mapping could not be parsed
        """
        config = raw if isinstance(raw, GameConfig) else GameConfig.from_dict(raw)
        config = config.with_seed()

        job = get_job(config.job)
        report = job.validate_overrides(config.initial_resource_overrides)
        if not report.ok:
            log.warning("configuration rejected: %s", report)
            return report

        timeline = Timeline(markers=list(self.timeline.markers))
        self.state = GameState(config, timeline, job)
        self.config = config
        self.warnings = config.deprecation_warnings()
        log.info("committed %s configuration with seed %s", config.job.name, config.random_seed)
        return report

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format_version": int(self.config.format_version),
            "config": self.config.to_dict(),
            "timeline": self.timeline.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Session":
        """
        Restore a session from its save representation.

        Raises:
            ConfigurationError: The stored configuration is malformed or its
                overrides are inconsistent
        """
        raw_config = dict(data.get("config") or {})
        if "format_version" not in data and "format_version" not in raw_config:
            raw_config["format_version"] = int(FormatVersion.LEGACY_CASTER_TAX)
        elif "format_version" in data:
            raw_config.setdefault("format_version", data["format_version"])

        config = GameConfig.from_dict(raw_config)
        if config.is_legacy:
            log.warning("loading a save in the deprecated caster tax format")
        return cls(config, Timeline.from_dict(data.get("timeline") or {}))

    def save(self, path: Union[str, Path]):
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Session":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))
