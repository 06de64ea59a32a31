"""Evaluate a document line by line, carrying variables forward."""

from collections.abc import Sequence
from dataclasses import dataclass, replace

from loguru import logger

from nerdcalci.core.engine.evaluator import evaluate_expression
from nerdcalci.core.engine.formatting import ERROR_MARKER, format_result
from nerdcalci.core.engine.preprocess import preprocess
from nerdcalci.errors import EvaluationError, ParseError
from nerdcalci.models.document import Line


@dataclass(frozen=True)
class LineOutcome:
    """What evaluating a single line produced."""

    result: str
    target: str | None = None
    value: float | None = None

    @property
    def failed(self) -> bool:
        return self.result == ERROR_MARKER


def evaluate_line(expression: str, variables: dict[str, float]) -> LineOutcome:
    """Evaluate one line, binding its assignment target in ``variables`` on success.

    Failures never touch ``variables``.
    """
    if not expression.strip():
        return LineOutcome(result="")

    try:
        prepared = preprocess(expression)
        if prepared is None:
            return LineOutcome(result="")
        value = evaluate_expression(prepared.expression, variables)
    except (ParseError, EvaluationError) as e:
        logger.debug("Line {!r} failed: {}", expression, e)
        return LineOutcome(result=ERROR_MARKER)

    if prepared.target is not None:
        variables[prepared.target] = value
    return LineOutcome(result=format_result(value), target=prepared.target, value=value)


def evaluate_expressions(expressions: Sequence[str]) -> list[str]:
    """Return the display result for each expression, in order."""
    variables: dict[str, float] = {}
    return [evaluate_line(expression, variables).result for expression in expressions]


def evaluate_lines(lines: Sequence[Line]) -> list[Line]:
    """Recompute every line's result in ``sort_order``.

    Returns copies of the lines, sorted, with ``result`` filled in. The
    pass is idempotent and always covers the whole document because any
    earlier line can change a binding used further down.
    """
    ordered = sorted(lines, key=lambda line: line.sort_order)
    results = evaluate_expressions([line.expression for line in ordered])
    return [replace(line, result=result) for line, result in zip(ordered, results, strict=True)]
