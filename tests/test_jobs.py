import pytest

from xivtimeline.common import ActionID, CommonResource, JobClass, SkillUnavailableReason, WarningKind
from xivtimeline.config import GameConfig
from xivtimeline.errors import ConfigurationError
from xivtimeline.game_state import GameState
from xivtimeline.job import get_job
from xivtimeline.job.blackmage import BLM, BlackMageDerived
from xivtimeline.job.samurai import SamuraiResource
from xivtimeline.resources import ResourceOverrideData
from xivtimeline.rng import ProcMode


def blm_state(*overrides, **kwargs):
    kwargs.setdefault("random_seed", "1234")
    return GameState(GameConfig(job=JobClass.BLACK_MAGE, initial_resource_overrides=overrides, **kwargs))


def sam_state(**kwargs):
    kwargs.setdefault("random_seed", "1234")
    return GameState(GameConfig(job=JobClass.SAMURAI, **kwargs))


ASTRAL_FIRE_3 = ResourceOverrideData("ASTRAL_FIRE", stacks=3)


class TestRegistry:
    def test_caster_gets_swiftcast_and_meteor(self):
        job = get_job(JobClass.BLACK_MAGE)
        for action_id in (ActionID.SWIFTCAST, ActionID.TINCTURE, ActionID.METEOR):
            assert job.get_skill(action_id) is not None
        assert CommonResource.SWIFTCAST in job.resources

    def test_melee_gets_final_heaven_only(self):
        job = get_job(JobClass.SAMURAI)
        assert job.get_skill(ActionID.FINAL_HEAVEN) is not None
        assert job.get_skill(ActionID.SWIFTCAST) is None
        assert CommonResource.SWIFTCAST not in job.resources

    def test_unsupported_job(self):
        with pytest.raises(ConfigurationError, match="PALADIN is not supported"):
            get_job(JobClass.PALADIN)

    def test_tincture_is_snapshotted(self):
        state = blm_state()
        tincture = state.apply_action(0, ActionID.TINCTURE, -2000)
        assert tincture.lock_duration == 1117
        fire = state.apply_action(0, ActionID.FIRE_III)
        assert fire.start_time == -883
        assert "TINCTURE" in fire.buffs


class TestBlackMage:
    def test_fire_iii_opener(self):
        state = blm_state()
        node = state.apply_action(0, ActionID.FIRE_III, -3500)
        assert node.is_valid
        assert node.cast_time == 3517
        assert node.lock_duration == 3617
        assert node.application_time == 17 + 800

        store = state.slots[0].store
        assert store.amount(BLM.ASTRAL_FIRE) == 3
        assert store.amount(BLM.UMBRAL_ICE) == 0
        assert store.amount(BlackMageDerived.ENOCHIAN) == 1
        assert store.amount(BLM.MANA) == 8000
        assert store.is_active(BLM.THUNDERHEAD)

    def test_scrubbing_into_fire_iii_shows_the_state_before_it_lands(self):
        state = blm_state()
        state.apply_action(0, ActionID.FIRE_III, 0)

        state.rebuild_up_to(1000)
        store = state.slots[0].store
        assert state.display_time == 1000
        assert state.slots[0].current_time == 1000
        assert store.amount(BLM.ASTRAL_FIRE) == 0
        assert store.amount(BLM.MANA) == 10_000

        state.advance_time(3000)
        store = state.slots[0].store
        assert store.amount(BLM.ASTRAL_FIRE) == 3
        assert store.amount(BLM.MANA) == 8000

    @pytest.mark.parametrize(
        "overrides, message",
        [
            (
                (ResourceOverrideData("ASTRAL_FIRE", stacks=1), ResourceOverrideData("UMBRAL_ICE", stacks=1)),
                "ASTRAL_FIRE and UMBRAL_ICE cannot both be active",
            ),
            ((ResourceOverrideData("POLYGLOT", timer=10_000),), "POLYGLOT timer requires ENOCHIAN"),
            ((ResourceOverrideData("UMBRAL_HEARTS", stacks=2),), "UMBRAL_HEARTS requires ENOCHIAN"),
            ((ResourceOverrideData("ASTRAL_SOUL", stacks=2),), "ASTRAL_SOUL requires ASTRAL_FIRE"),
        ],
    )
    def test_inconsistent_overrides(self, overrides, message):
        with pytest.raises(ConfigurationError, match=message):
            blm_state(*overrides)

    def test_swiftcast_makes_next_spell_instant(self):
        state = blm_state(ASTRAL_FIRE_3)
        state.apply_action(0, ActionID.SWIFTCAST, 0)
        node = state.apply_action(0, ActionID.FIRE_IV)
        assert node.start_time == 717
        assert node.cast_time == 0
        assert not node.is_spell_cast
        assert node.lock_duration == 717
        assert not state.slots[0].store.is_active(CommonResource.SWIFTCAST)

    def test_triplecast_stacks(self):
        state = blm_state(ASTRAL_FIRE_3)
        state.apply_action(0, ActionID.TRIPLECAST, 0)
        nodes = [state.apply_action(0, ActionID.FIRE_IV) for _ in range(4)]
        assert [node.cast_time for node in nodes] == [0, 0, 0, 2017]
        store = state.slots[0].store
        assert store.amount(BLM.TRIPLECAST) == 0
        assert store.amount(BLM.ASTRAL_SOUL) == 4
        assert store.amount(BLM.MANA) == 10_000 - 4 * 1600

    def test_ley_lines_haste(self):
        state = blm_state(ASTRAL_FIRE_3)
        state.apply_action(0, ActionID.LEY_LINES, 0)
        node = state.apply_action(0, ActionID.FIRE_IV)
        assert node.cast_time == 1717
        assert node.recast_duration == 2133
        assert "LEY_LINES" in node.buffs

    def test_disabled_ley_lines(self):
        ley_lines = ResourceOverrideData("LEY_LINES", stacks=1, timer=20_000, enabled=False)
        state = blm_state(ASTRAL_FIRE_3, ley_lines)
        node = state.apply_action(0, ActionID.FIRE_IV, 0)
        assert node.cast_time == 2017
        assert "LEY_LINES" not in node.buffs

    def test_firestarter_always(self):
        state = blm_state(proc_mode=ProcMode.ALWAYS)
        fire = state.apply_action(0, ActionID.FIRE, 0)
        assert fire.procs == ("Firestarter",)
        assert state.slots[0].store.is_active(BLM.FIRESTARTER)

        fire_iii = state.apply_action(0, ActionID.FIRE_III)
        assert fire_iii.cast_time == 0
        store = state.slots[0].store
        assert not store.is_active(BLM.FIRESTARTER)
        assert store.amount(BLM.ASTRAL_FIRE) == 3

    def test_firestarter_never(self):
        state = blm_state(proc_mode=ProcMode.NEVER)
        fire = state.apply_action(0, ActionID.FIRE, 0)
        assert fire.procs == ()
        assert not state.slots[0].store.is_active(BLM.FIRESTARTER)

    def test_fire_iv_requires_astral_fire(self):
        node = blm_state().apply_action(0, ActionID.FIRE_IV, 0)
        assert node.invalid_reasons == (SkillUnavailableReason.REQUIREMENTS_NOT_MET,)

    def test_level_gate(self):
        node = blm_state(level=80).apply_action(0, ActionID.FLARE_STAR, 0)
        assert SkillUnavailableReason.NOT_UNLOCKED in node.invalid_reasons

    def test_umbral_ice_mana_tick(self):
        state = blm_state(ResourceOverrideData("UMBRAL_ICE", stacks=3), ResourceOverrideData("MANA", stacks=0))
        assert state.slots[0].store.amount(BLM.MANA) == 0
        # first server tick lands 1.2s into the countdown
        state.advance_time(1300)
        assert state.slots[0].store.amount(BLM.MANA) == 6200

    def test_no_mana_tick_in_astral_fire(self):
        state = blm_state(ASTRAL_FIRE_3, ResourceOverrideData("MANA", stacks=1000))
        state.advance_time(10_000)
        assert state.slots[0].store.amount(BLM.MANA) == 1000

    def test_polyglot_accumulates_under_enochian(self):
        state = blm_state(ASTRAL_FIRE_3)
        state.advance_time(35_000)
        assert state.slots[0].store.amount(BLM.POLYGLOT) == 1

    def test_enochian_modifier_is_captured(self):
        state = blm_state(ASTRAL_FIRE_3)
        node = state.apply_action(0, ActionID.FIRE_IV, 0)
        names = [modifier.name for modifier in node.potency.modifiers]
        assert names == ["Enochian", "Astral Fire 3"]
        assert node.potency.self_multiplier == pytest.approx(1.27 * 1.8)


class TestSamurai:
    def test_full_combo(self):
        state = sam_state()
        state.apply_action(0, ActionID.HAKAZE, 0)
        state.apply_action(0, ActionID.JINPU)
        gekko = state.apply_action(0, ActionID.GEKKO)

        assert gekko.start_time == 5034
        assert gekko.potency.base == 420
        assert [modifier.name for modifier in gekko.potency.modifiers] == ["Fugetsu"]
        store = state.slots[0].store
        assert store.amount(SamuraiResource.GETSU) == 1
        assert store.amount(SamuraiResource.KENKI) == 20
        assert store.is_active(SamuraiResource.FUGETSU)
        assert state.slots[0].warnings == []

    def test_finisher_out_of_combo(self):
        state = sam_state()
        state.apply_action(0, ActionID.HAKAZE, 0)
        gekko = state.apply_action(0, ActionID.GEKKO)

        assert gekko.is_valid
        assert gekko.potency.base == 210
        assert state.slots[0].store.amount(SamuraiResource.GETSU) == 0
        assert [warning.kind for warning in state.slots[0].warnings] == [WarningKind.COMBO_BREAK]

    def test_meikyo_shisui_skips_the_combo(self):
        state = sam_state()
        state.apply_action(0, ActionID.MEIKYO_SHISUI, 0)
        gekko = state.apply_action(0, ActionID.GEKKO)

        assert gekko.potency.base == 420
        store = state.slots[0].store
        assert store.amount(SamuraiResource.MEIKYO_SHISUI) == 2
        assert store.amount(SamuraiResource.GETSU) == 1
        assert state.slots[0].warnings == []

    def test_fuka_haste(self):
        state = sam_state()
        state.apply_action(0, ActionID.HAKAZE, 0)
        shifu = state.apply_action(0, ActionID.SHIFU)
        hakaze = state.apply_action(0, ActionID.HAKAZE)
        assert shifu.recast_duration == 2517
        assert hakaze.recast_duration == 2183

    def test_midare_needs_three_sen(self):
        node = sam_state().apply_action(0, ActionID.MIDARE_SETSUGEKKA, 0)
        assert node.invalid_reasons == (SkillUnavailableReason.REQUIREMENTS_NOT_MET,)

    def test_midare_and_kaeshi(self):
        sen = [ResourceOverrideData(name, stacks=1) for name in ("SETSU", "GETSU", "KA")]
        state = sam_state(initial_resource_overrides=tuple(sen))
        midare = state.apply_action(0, ActionID.MIDARE_SETSUGEKKA, 0)
        assert midare.is_spell_cast
        assert midare.cast_time == 1817
        kaeshi = state.apply_action(0, ActionID.KAESHI_SETSUGEKKA)
        assert kaeshi.is_valid
        store = state.slots[0].store
        assert store.amount(SamuraiResource.MEDITATION) == 1
        assert not store.is_active(SamuraiResource.TSUBAME_GAESHI_READY)

    def test_kenki_spender(self):
        state = sam_state()
        shinten = state.apply_action(0, ActionID.HISSATSU_SHINTEN, 0)
        assert shinten.invalid_reasons == (SkillUnavailableReason.NOT_ENOUGH_RESOURCE,)

        state.apply_action(0, ActionID.IKISHOTEN, 0)
        shinten = state.apply_action(0, ActionID.HISSATSU_SHINTEN)
        assert shinten.is_valid
        assert state.slots[0].store.amount(SamuraiResource.KENKI) == 25
