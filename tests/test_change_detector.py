from __future__ import annotations

import pytest

from stratlive.models.snapshot import CRITICAL_FIELDS, HIGH_TOLERANCE_FIELDS, FieldClass
from stratlive.state.policy import ChangeDetector


def test_regular_field_within_tolerance_is_discarded() -> None:
    detector = ChangeDetector()
    applied = {"price": 100.0, "position": "Flat"}

    assert detector.should_apply({"price": 100.0005}, applied) is False


def test_regular_field_beyond_tolerance_is_applied() -> None:
    detector = ChangeDetector()

    assert detector.should_apply({"price": 100.01}, {"price": 100.0}) is True


def test_critical_field_change_is_applied_immediately() -> None:
    detector = ChangeDetector()
    applied = {"price": 100.0, "position": "Flat"}

    assert detector.first_significant_change({"price": 100.0005, "position": "Long"}, applied) == "position"


@pytest.mark.parametrize("name", sorted(CRITICAL_FIELDS - {"instrument", "position"}))
def test_any_nonzero_delta_on_critical_numeric_field_applies(name: str) -> None:
    detector = ChangeDetector()
    if name in {"auto_trading_enabled", "trading_disabled"}:
        assert detector.should_apply({name: True}, {name: False}) is True
    else:
        assert detector.should_apply({name: 1.0000001}, {name: 1.0}) is True


@pytest.mark.parametrize("name", sorted(HIGH_TOLERANCE_FIELDS))
def test_high_tolerance_field_absorbs_small_oscillation(name: str) -> None:
    detector = ChangeDetector()

    assert detector.should_apply({name: 0.515}, {name: 0.5}) is False
    assert detector.should_apply({name: 0.485}, {name: 0.5}) is False
    assert detector.should_apply({name: 0.56}, {name: 0.5}) is True


def test_critical_field_appearing_for_the_first_time_applies() -> None:
    detector = ChangeDetector()

    assert detector.should_apply({"position": "Flat"}, {}) is True


def test_critical_type_mismatch_applies() -> None:
    detector = ChangeDetector()

    assert detector.should_apply({"instrument": "ES"}, {"instrument": 1.0}) is True


def test_unchanged_critical_field_does_not_apply() -> None:
    detector = ChangeDetector()

    applied = {"position": "Long", "position_size": 2}

    assert detector.should_apply({"position": "Long", "position_size": 2.0}, applied) is False


def test_non_numeric_regular_field_uses_strict_equality() -> None:
    detector = ChangeDetector()

    assert detector.should_apply({"market_regime": "trending"}, {"market_regime": "trending"}) is False
    assert detector.should_apply({"market_regime": "ranging"}, {"market_regime": "trending"}) is True


def test_absent_fields_never_trigger() -> None:
    detector = ChangeDetector()
    applied = {"price": 100.0, "rsi": 55.0, "position": "Long"}

    assert detector.should_apply({}, applied) is False
    assert detector.should_apply({"rsi": 55.0}, applied) is False


def test_bool_is_not_treated_as_a_number() -> None:
    detector = ChangeDetector()

    assert detector.should_apply({"smart_trailing_active": True}, {"smart_trailing_active": 1.0}) is True


def test_field_class_overrides_replace_defaults() -> None:
    detector = ChangeDetector(field_classes={"price": FieldClass.HIGH_TOLERANCE, "rsi": FieldClass.CRITICAL})

    assert detector.field_class("price") == FieldClass.HIGH_TOLERANCE
    assert detector.should_apply({"price": 100.01}, {"price": 100.0}) is False
    assert detector.should_apply({"rsi": 50.0001}, {"rsi": 50.0}) is True


def test_unlisted_fields_are_regular() -> None:
    detector = ChangeDetector(regular_tolerance=0.5)

    assert detector.field_class("something_new") == FieldClass.REGULAR
    assert detector.tolerance_for(FieldClass.REGULAR) == 0.5
    assert detector.tolerance_for(FieldClass.CRITICAL) == 0.0


def test_critical_numbers_compare_by_value_across_int_and_float() -> None:
    detector = ChangeDetector()

    assert detector.should_apply({"position_size": 1}, {"position_size": 1.0}) is False
    assert detector.should_apply({"position_size": 1.0}, {"position_size": 1}) is False
    assert detector.should_apply({"position_size": 2}, {"position_size": 1.0}) is True
