"""Tests for result formatting."""

import pytest

from nerdcalci.core.engine.formatting import format_result


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (5.0, "5"),
        (-7.0, "-7"),
        (0.0, "0"),
        (2.5, "2.50"),
        (1 / 3, "0.33"),
        (-0.125, "-0.12"),
        (2.0**40, "1099511627776"),
        (1e30, "1.00e+30"),
        (-1e30, "-1.00e+30"),
    ],
)
def test_format_result(value: float, expected: str) -> None:
    assert format_result(value) == expected
