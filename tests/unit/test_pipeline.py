"""Tests for whole-document evaluation."""

from nerdcalci.core.engine.pipeline import evaluate_expressions, evaluate_line, evaluate_lines
from nerdcalci.models.document import Line


def test_variables_carry_forward() -> None:
    assert evaluate_expressions(["x = 5", "x + 1"]) == ["5", "6"]


def test_reference_before_assignment_fails() -> None:
    assert evaluate_expressions(["y + 1", "y = 2"]) == ["Err", "2"]


def test_identifier_with_digit_is_not_implicit_multiplication() -> None:
    assert evaluate_expressions(["rate = 10", "rate2"]) == ["10", "Err"]


def test_percentage_phrases() -> None:
    assert evaluate_expressions(
        ["20% of 100", "20% off 100", "100 + 20%", "100 - 15%"]
    ) == ["20", "80", "120", "85"]


def test_blank_and_comment_lines_have_no_result() -> None:
    assert evaluate_expressions(["", "# Groceries", "milk = 3 # per litre"]) == ["", "", "3"]


def test_failed_assignment_leaves_previous_binding() -> None:
    assert evaluate_expressions(["a = 1", "a = 1 / 0", "a"]) == ["1", "Err", "1"]


def test_reassignment_uses_latest_value() -> None:
    assert evaluate_expressions(["a = 1", "a = a + 1", "a * 10"]) == ["1", "2", "20"]


def test_invalid_names_are_errors() -> None:
    results = evaluate_expressions(["rate with disc = 10", "2rate = 10", "rate-disc = 10"])
    assert results == ["Err", "Err", "Err"]


def test_evaluate_line_binds_target() -> None:
    variables: dict[str, float] = {}
    outcome = evaluate_line("total = 2 * 21", variables)
    assert outcome.result == "42"
    assert outcome.target == "total"
    assert outcome.value == 42.0
    assert variables == {"total": 42.0}


def test_evaluate_line_failure_does_not_bind() -> None:
    variables: dict[str, float] = {}
    outcome = evaluate_line("total = nope", variables)
    assert outcome.failed
    assert variables == {}


def _line(line_id: int, sort_order: int, expression: str, result: str = "") -> Line:
    return Line(id=line_id, document_id=1, sort_order=sort_order, expression=expression, result=result)


def test_evaluate_lines_orders_by_sort_order() -> None:
    lines = [_line(1, 1, "a * 2"), _line(2, 0, "a = 4")]
    evaluated = evaluate_lines(lines)
    assert [ln.id for ln in evaluated] == [2, 1]
    assert [ln.result for ln in evaluated] == ["4", "8"]


def test_evaluate_lines_is_idempotent() -> None:
    lines = [_line(1, 0, "a = 2.5"), _line(2, 1, "a * 3", result="stale"), _line(3, 2, "b")]
    once = evaluate_lines(lines)
    twice = evaluate_lines(once)
    assert once == twice
    assert [ln.result for ln in once] == ["2.50", "7.50", "Err"]


def test_remainder_follows_dividend_sign() -> None:
    assert evaluate_expressions(["a = -7", "a % 3", "10 % 4"]) == ["-7", "-1", "2"]
