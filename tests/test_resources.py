from enum import Enum

import pytest

from xivtimeline.common import WarningKind
from xivtimeline.resources import (
    ExclusiveRule,
    RequiresRule,
    ResourceOverrideData,
    ResourceStore,
    cooldown,
    gauge,
    stack_timer,
    timed_buff,
)


class Res(Enum):
    GAUGE = "GAUGE"
    BUFF = "BUFF"
    STACKS = "STACKS"
    CHARGES = "CHARGES"
    STANCE_A = "STANCE_A"
    STANCE_B = "STANCE_B"


class Derived(Enum):
    ACTIVE = "ACTIVE"


RULES = (
    ExclusiveRule((Res.STANCE_A, Res.STANCE_B)),
    RequiresRule(Res.STACKS, Derived.ACTIVE, on_timer=True),
)


def stance_active(store):
    return int(store.amount(Res.STANCE_A) > 0 or store.amount(Res.STANCE_B) > 0)


@pytest.fixture
def store():
    return ResourceStore(
        {
            Res.GAUGE: gauge(100, warn_on_overcap=True),
            Res.BUFF: timed_buff(10_000, max_stacks=2, warn_on_timeout=True, warn_on_overwrite=True),
            Res.STACKS: stack_timer(2, 30_000, requires=Derived.ACTIVE, warn_on_overcap=True),
            Res.CHARGES: cooldown(30_000, max_stacks=3),
            Res.STANCE_A: gauge(3),
            Res.STANCE_B: gauge(3),
        },
        {Derived.ACTIVE: stance_active},
    )


def warning_kinds(store):
    return [warning.kind for warning in store.drain_warnings()]


class TestGauge:
    def test_set_clamps_and_warns_on_overcap(self, store):
        store.set(Res.GAUGE, amount=150)
        assert store.amount(Res.GAUGE) == 100
        assert warning_kinds(store) == [WarningKind.OVERCAP]

        store.set(Res.GAUGE, amount=-5)
        assert store.amount(Res.GAUGE) == 0

    def test_consume_refuses_when_short(self, store):
        store.gain(Res.GAUGE, 20)
        assert store.consume(Res.GAUGE, 30) is False
        assert store.amount(Res.GAUGE) == 20
        assert store.consume(Res.GAUGE, 20) is True
        assert store.amount(Res.GAUGE) == 0

    def test_get_returns_a_copy(self, store):
        state = store.get(Res.GAUGE)
        state.amount = 99
        assert store.amount(Res.GAUGE) == 0


class TestTimedBuff:
    def test_grant_and_expire(self, store):
        store.grant(Res.BUFF)
        assert store.amount(Res.BUFF) == 2
        assert store.timer(Res.BUFF) == 10_000

        store.tick(4_000)
        assert store.timer(Res.BUFF) == 6_000
        store.tick(6_000)
        assert store.amount(Res.BUFF) == 0
        assert warning_kinds(store) == [WarningKind.TIMEOUT]

    def test_overwrite_warning(self, store):
        store.grant(Res.BUFF)
        store.grant(Res.BUFF)
        assert warning_kinds(store) == [WarningKind.OVERWRITE]

    def test_consuming_last_stack_clears_timer(self, store):
        store.grant(Res.BUFF, stacks=1)
        assert store.consume(Res.BUFF)
        assert store.timer(Res.BUFF) == 0
        store.tick(20_000)
        assert warning_kinds(store) == []

    def test_step_size_reports_expiry(self, store):
        store.grant(Res.BUFF, duration=4_000)
        assert store.calc_step_size() == 4_000


class TestCooldown:
    def test_charges_are_derived_from_timer(self, store):
        assert store.amount(Res.CHARGES) == 3
        for expected in (2, 1, 0):
            assert store.use_charge(Res.CHARGES)
            assert store.amount(Res.CHARGES) == expected
        assert store.timer(Res.CHARGES) == 90_000
        assert store.use_charge(Res.CHARGES) is False

        assert store.calc_step_size() == 30_000
        store.tick(30_000)
        assert store.amount(Res.CHARGES) == 1
        assert store.timer(Res.CHARGES) == 60_000

    def test_custom_recast(self, store):
        store.use_charge(Res.CHARGES, recast=12_000)
        assert store.timer(Res.CHARGES) == 12_000
        store.tick(12_000)
        assert store.amount(Res.CHARGES) == 3

    def test_use_charge_on_gauge_is_rejected(self, store):
        with pytest.raises(ValueError, match="not a cooldown"):
            store.use_charge(Res.GAUGE)


class TestDerivedAndStackTimer:
    def test_derived_follows_base(self, store):
        assert store.amount(Derived.ACTIVE) == 0
        store.set(Res.STANCE_A, amount=1)
        assert store.amount(Derived.ACTIVE) == 1
        store.remove(Res.STANCE_A)
        assert store.amount(Derived.ACTIVE) == 0

    def test_derived_is_read_only(self, store):
        with pytest.raises(KeyError):
            store.set(Derived.ACTIVE, amount=1)

    def test_stack_timer_only_runs_while_gate_active(self, store):
        store.tick(60_000)
        assert store.amount(Res.STACKS) == 0
        assert store.timer(Res.STACKS) == 0

        store.set(Res.STANCE_B, amount=3)
        assert store.calc_step_size() == 30_000
        store.tick(30_000)
        assert store.amount(Res.STACKS) == 1

        store.tick(60_000)
        assert store.amount(Res.STACKS) == 2
        assert warning_kinds(store) == [WarningKind.OVERCAP]


class TestConstruction:
    def test_duplicate_names(self):
        class Other(Enum):
            GAUGE = "GAUGE"

        with pytest.raises(ValueError, match="duplicate resource name GAUGE"):
            ResourceStore({Res.GAUGE: gauge(1), Other.GAUGE: gauge(1)})

    def test_cooldown_needs_recast(self):
        with pytest.raises(ValueError, match="positive recast"):
            ResourceStore({Res.CHARGES: cooldown(0)})

    def test_default_out_of_range(self):
        with pytest.raises(ValueError, match="outside"):
            ResourceStore({Res.GAUGE: gauge(3, 5)})

    def test_unknown_requirement(self):
        with pytest.raises(ValueError, match="requires unknown resource"):
            ResourceStore({Res.STACKS: stack_timer(2, 30_000, requires=Derived.ACTIVE)})

    def test_key_for_unknown_name(self, store):
        with pytest.raises(KeyError):
            store.key_for("NOPE")


class TestOverrides:
    def test_apply_overrides(self, store):
        store.apply_overrides(
            [
                ResourceOverrideData("CHARGES", timer=45_000),
                ResourceOverrideData("BUFF", stacks=0, timer=5_000),
                ResourceOverrideData("GAUGE", stacks=500),
            ]
        )
        assert store.amount(Res.CHARGES) == 1
        assert store.amount(Res.BUFF) == 1
        assert store.timer(Res.BUFF) == 5_000
        assert store.amount(Res.GAUGE) == 100

    def test_full_charges_with_zero_timer(self, store):
        store.apply_overrides([ResourceOverrideData("CHARGES", stacks=3, timer=0)])
        assert store.amount(Res.CHARGES) == 3
        assert store.available(Res.CHARGES)

    def test_valid_set(self, store):
        report = store.validate_overrides(
            [ResourceOverrideData("STANCE_A", stacks=3), ResourceOverrideData("STACKS", stacks=1, timer=10_000)],
            RULES,
        )
        assert report.ok
        assert str(report) == "ok"

    def test_exclusive_stances_rejected_without_touching_store(self, store):
        report = store.validate_overrides(
            [
                ResourceOverrideData("STANCE_A", stacks=1),
                ResourceOverrideData("STANCE_B", stacks=2),
                ResourceOverrideData("GAUGE", stacks=40),
            ],
            RULES,
        )
        assert not report.ok
        assert report.errors == ("STANCE_A and STANCE_B cannot both be active",)
        assert store.amount(Res.STANCE_A) == 0
        assert store.amount(Res.STANCE_B) == 0
        assert store.amount(Res.GAUGE) == 0

    def test_timer_requires_gate(self, store):
        report = store.validate_overrides([ResourceOverrideData("STACKS", timer=10_000)], RULES)
        assert report.errors == ("STACKS timer requires ACTIVE",)

    def test_timed_buff_without_timer_stays_up(self, store):
        overrides = [ResourceOverrideData("BUFF", stacks=2, timer=0)]
        assert store.validate_overrides(overrides).ok
        store.apply_overrides(overrides)
        store.tick(60_000)
        assert store.amount(Res.BUFF) == 2
        assert store.calc_step_size() is None
        assert warning_kinds(store) == []

    def test_every_problem_is_reported(self, store):
        report = store.validate_overrides(
            [
                ResourceOverrideData("NOPE", stacks=1),
                ResourceOverrideData("ACTIVE", stacks=1),
                ResourceOverrideData("GAUGE", stacks=101),
                ResourceOverrideData("GAUGE", stacks=1),
                ResourceOverrideData("CHARGES", timer=100_000),
            ]
        )
        assert report.errors == (
            "unknown resource NOPE",
            "ACTIVE is derived and cannot be overridden",
            "GAUGE amount must be within [0, 100]",
            "duplicate override for GAUGE",
            "CHARGES timer must be within [0, 90s]",
        )


def test_snapshot_is_detached(store):
    store.set(Res.STANCE_A, amount=2)
    values = store.snapshot()
    values[Res.STANCE_A].amount = 0
    assert store.amount(Res.STANCE_A) == 2
    assert values[Derived.ACTIVE].amount == 1


def test_copy_is_independent(store):
    other = store.copy()
    other.set(Res.GAUGE, amount=50)
    assert store.amount(Res.GAUGE) == 0
