import json
import logging
from pathlib import Path

import pytest

from xivtimeline.common import ActionID, FormatVersion, JobClass, MarkerType
from xivtimeline.config import GameConfig, parse_job
from xivtimeline.errors import ConfigurationError
from xivtimeline.resources import ResourceOverrideData
from xivtimeline.rng import ProcMode
from xivtimeline.session import Session
from xivtimeline.timeline import Marker

SESSIONS = Path(__file__).resolve().parents[1] / "sessions"


class TestGameConfigParsing:
    def test_numeric_strings_are_accepted(self):
        config = GameConfig.from_dict(
            {"job": "BLM", "level": "90", "spell_speed": " 2500 ", "fps": "120", "countdown": 3}
        )
        assert config.job == JobClass.BLACK_MAGE
        assert config.level == 90
        assert config.spell_speed == 2500
        assert config.fps == 120.0
        assert config.countdown_ms == 3000

    def test_every_bad_number_is_reported(self):
        with pytest.raises(ConfigurationError, match="some inputs are not numbers: spell_speed, fps"):
            GameConfig.from_dict({"spell_speed": "fast", "fps": "", "level": 100})

    def test_integer_fields_reject_fractions(self):
        with pytest.raises(ConfigurationError, match="skill_speed"):
            GameConfig.from_dict({"skill_speed": "2500.5"})

    def test_malformed_override(self):
        with pytest.raises(ConfigurationError, match=r"initial_resource_overrides\[0\]"):
            GameConfig.from_dict({"initial_resource_overrides": [{"type": "MANA", "stacks": "lots"}]})

    @pytest.mark.parametrize("value, job", [("BLM", JobClass.BLACK_MAGE), ("samurai", JobClass.SAMURAI), ("34", JobClass.SAMURAI)])
    def test_parse_job(self, value, job):
        assert parse_job(value) == job

    def test_unknown_job(self):
        with pytest.raises(ConfigurationError, match="unknown job"):
            GameConfig.from_dict({"job": "Chocobo"})

    def test_job_without_definition(self):
        with pytest.raises(ConfigurationError, match="job PALADIN is not supported"):
            GameConfig.from_dict({"job": "PLD"})

    def test_unsupported_level(self):
        with pytest.raises(ConfigurationError, match="unsupported level: 75"):
            GameConfig.from_dict({"level": 75})

    def test_unknown_proc_mode(self):
        with pytest.raises(ConfigurationError, match="unknown proc mode"):
            GameConfig.from_dict({"proc_mode": "sometimes"})

    def test_overrides_are_parsed_in_seconds(self):
        config = GameConfig.from_dict(
            {"initial_resource_overrides": [{"type": "LEY_LINES", "stacks": 1, "timer": 12.5, "enabled": False}]}
        )
        assert config.initial_resource_overrides == (ResourceOverrideData("LEY_LINES", 1, 12_500, False),)

    def test_round_trip(self):
        config = GameConfig(
            job=JobClass.SAMURAI,
            level=90,
            skill_speed=1000,
            random_seed="42",
            proc_mode=ProcMode.NEVER,
            initial_resource_overrides=(ResourceOverrideData("KENKI", stacks=20),),
        )
        assert GameConfig.from_dict(config.to_dict()) == config


class TestGameConfig:
    def test_with_seed(self):
        seed = GameConfig().with_seed().random_seed
        assert len(seed) == 4
        assert seed.isdigit()
        assert GameConfig(random_seed="abc").with_seed().random_seed == "abc"

    def test_speed_follows_role(self):
        assert GameConfig(job=JobClass.BLACK_MAGE, spell_speed=500, skill_speed=600).speed == 500
        assert GameConfig(job=JobClass.SAMURAI, spell_speed=500, skill_speed=600).speed == 600

    def test_gcd_preview(self):
        assert GameConfig(spell_speed=400).gcd_preview() == ("2.50", "2.517")

    def test_speed_previews_cover_both_substats(self):
        previews = GameConfig(job=JobClass.SAMURAI, spell_speed=400, skill_speed=300).speed_previews()
        assert previews == {"spell_speed": ("2.50", "2.517"), "skill_speed": ("n/a", "n/a")}

    def test_timing_model(self):
        timing = GameConfig(gcd_skill_correction=0.01).timing_model()
        assert timing.gcd_recast() == 2527
        assert timing.cast_lock(2517) == 2617

    def test_legacy_caster_tax(self):
        config = GameConfig.from_dict({"format_version": 1, "caster_tax": 0.06})
        assert config.is_legacy
        timing = config.timing_model()
        assert timing.gcd_recast() == 2500
        assert timing.cast_lock(2500) == 2560
        assert timing.instant_lock() == 700
        assert "0.06s" in config.deprecation_warnings()[0]
        assert config.to_dict()["caster_tax"] == 0.06

    def test_current_format_has_no_warnings(self):
        config = GameConfig.from_dict({"caster_tax": 0.06})
        assert config.format_version == FormatVersion.FPS_TAX
        assert config.legacy_caster_tax is None
        assert config.deprecation_warnings() == []


class TestSession:
    def make_session(self):
        session = Session(GameConfig(random_seed="1234"))
        session.state.apply_action(0, ActionID.FIRE_III, -3500)
        session.state.add_marker(Marker(10_000, 5_000, MarkerType.UNTARGETABLE, "jump"))
        return session

    def test_new_session_gets_a_seed(self):
        session = Session()
        assert len(session.config.random_seed) == 4
        assert session.state.config is session.config
        assert session.warnings == []

    def test_rejected_overrides_leave_session_untouched(self):
        session = self.make_session()
        state, config = session.state, session.config

        report = session.apply_config(
            {
                "job": "BLM",
                "initial_resource_overrides": [
                    {"type": "ASTRAL_FIRE", "stacks": 1},
                    {"type": "UMBRAL_ICE", "stacks": 1},
                ],
            }
        )
        assert not report.ok
        assert report.errors == ("ASTRAL_FIRE and UMBRAL_ICE cannot both be active",)
        assert session.state is state
        assert session.config is config
        assert len(session.timeline.nodes(0)) == 1

    def test_malformed_config_raises_and_leaves_session_untouched(self):
        session = self.make_session()
        state = session.state
        with pytest.raises(ConfigurationError):
            session.apply_config({"fps": "sixty"})
        assert session.state is state

    def test_apply_resets_script_and_keeps_markers(self):
        session = self.make_session()
        report = session.apply_config({"job": "SAM", "skill_speed": "500"})

        assert report.ok
        assert session.config.job == JobClass.SAMURAI
        assert len(session.config.random_seed) == 4
        assert session.timeline.nodes(0) == ()
        assert [marker.description for marker in session.timeline.markers] == ["jump"]
        assert session.state.apply_action(0, ActionID.HAKAZE, 0).is_valid

    def test_save_and_load(self, tmp_path):
        session = self.make_session()
        path = tmp_path / "session.json"
        session.save(path)

        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert data["format_version"] == 2
        assert data["timeline"]["slots"] == [[{"FIRE_III": {"time": -3500, "targets": 1}}]]

        loaded = Session.load(path)
        assert loaded.to_dict() == session.to_dict()
        assert loaded.config == session.config
        assert loaded.timeline.nodes(0)[0].is_valid

    def test_legacy_save_loads_with_warning(self, caplog):
        data = {
            "config": {"job": "BLM", "caster_tax": 0.06, "random_seed": "7"},
            "timeline": {"slots": [[{"FIRE_III": {"time": -3500}}]]},
        }
        with caplog.at_level(logging.WARNING):
            session = Session.from_dict(data)

        assert "deprecated" in caplog.text
        assert session.config.is_legacy
        assert session.warnings
        node = session.timeline.nodes(0)[0]
        assert node.cast_time == 3500
        assert node.lock_duration == 3560
        assert session.to_dict()["format_version"] == 1

    def test_bundled_session(self):
        session = Session.load(SESSIONS / "blm_opener.json")
        assert session.timeline.slot_count == 2
        assert session.timeline.nodes(0)[0].is_valid
        assert session.state.total_potency(0, tincture_multiplier=1.1) > 0
        assert session.state.total_potency(1) > 0
