from decimal import Decimal

import pytest

from cashgame.domain.money import (
    EPSILON,
    add_amounts,
    is_valid_amount,
    parse_amount,
    subtract_amounts,
    sum_amounts,
    to_money,
    within_tolerance,
)


def test_subtraction_is_exact_to_the_cent():
    assert subtract_amounts(Decimal("175.50"), Decimal("100.00")) == Decimal("75.50")
    assert subtract_amounts(175.5, 100) == Decimal("75.50")


def test_float_inputs_do_not_leak_binary_error():
    assert add_amounts(0.1, 0.2) == Decimal("0.30")
    assert sum_amounts([0.1] * 10) == Decimal("1.00")


def test_to_money_rounds_half_up():
    assert to_money("2.345") == Decimal("2.35")
    assert to_money("-2.345") == Decimal("-2.35")
    assert str(to_money(5)) == "5.00"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("10", True),
        ("10.5", True),
        ("10.55", True),
        ("10.550", True),
        ("10.555", False),
        ("NaN", False),
        ("Infinity", False),
    ],
)
def test_is_valid_amount(value, expected):
    assert is_valid_amount(value) is expected


def test_within_tolerance_uses_one_cent():
    assert EPSILON == Decimal("0.01")
    assert within_tolerance("10.00", "10.01")
    assert not within_tolerance("10.00", "10.02")


def test_parse_amount_reports_bad_input_as_failure():
    ok = parse_amount("12.30")
    assert ok.ok
    assert ok.value == Decimal("12.30")

    bad = parse_amount("12.345")
    assert not bad.ok
    assert bad.code == "INVALID_AMOUNT"

    garbage = parse_amount("twelve")
    assert not garbage.ok
    assert garbage.code == "INVALID_AMOUNT"
