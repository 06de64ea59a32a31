"""Evaluate a preprocessed expression against the running variable table.

The heavy lifting is done by sympy's expression parser. Before sympy sees
the text, every identifier is checked against the variable table and the
built-in allow-list, then swapped for a private placeholder, so sympy's
tokenization never decides what an unknown name means.
"""

import ast
import math
import re
from collections.abc import Callable, Mapping
from tokenize import TokenError
from typing import Any

import sympy as sp
from sympy.parsing.sympy_parser import convert_xor, parse_expr, standard_transformations

from nerdcalci.errors import EvaluationError

TRANSFORMATIONS = (*standard_transformations, convert_xor)


def _builtin(func: Callable[..., Any]) -> Callable[..., Any]:
    # sympy may pass evaluate=False to calls it recognizes; built-ins ignore it.
    def call(*args: Any, **_kwargs: Any) -> Any:
        return func(*args)

    return call


BUILTIN_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "abs": _builtin(sp.Abs),
    "acos": _builtin(sp.acos),
    "asin": _builtin(sp.asin),
    "atan": _builtin(sp.atan),
    "cbrt": _builtin(lambda x: sp.real_root(x, 3)),
    "ceil": _builtin(sp.ceiling),
    "cos": _builtin(sp.cos),
    "cosh": _builtin(sp.cosh),
    "exp": _builtin(sp.exp),
    "floor": _builtin(sp.floor),
    "log": _builtin(sp.log),
    "log10": _builtin(lambda x: sp.log(x, 10)),
    "log1p": _builtin(lambda x: sp.log(1 + x)),
    "log2": _builtin(lambda x: sp.log(x, 2)),
    "pow": _builtin(lambda base, exponent: sp.Pow(base, exponent, evaluate=False)),
    "signum": _builtin(sp.sign),
    "sin": _builtin(sp.sin),
    "sinh": _builtin(sp.sinh),
    "sqrt": _builtin(sp.sqrt),
    "tan": _builtin(sp.tan),
    "tanh": _builtin(sp.tanh),
}

BUILTIN_CONSTANTS: dict[str, sp.Expr] = {
    "pi": sp.pi,
    "e": sp.E,
}

BUILTIN_NAMES: frozenset[str] = frozenset(BUILTIN_FUNCTIONS) | frozenset(BUILTIN_CONSTANTS)

_REMAINDER = "_nc_rem"

_UNARY_FUNCTIONS = sorted(set(BUILTIN_FUNCTIONS) - {"pow"}, key=len, reverse=True)

_ALLOWED_CHARS_RE = re.compile(r"^[0-9A-Za-z_\s.+\-*/^%(),]*$")
_TOKEN_RE = re.compile(
    r"(?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)|(?P<name>[A-Za-z_][A-Za-z0-9_]*)"
)
_CONSTANT_CALL_RE = re.compile(r"\b(pi|e)\s*\(\s*\)")
_BARE_CALL_RE = re.compile(
    rf"\b({'|'.join(_UNARY_FUNCTIONS)})\s+(-?\s*(?:\d+(?:\.\d+)?|[A-Za-z_][A-Za-z0-9_]*))"
)


def _truncated_remainder(dividend: Any, divisor: Any) -> Any:
    """``%`` with the sign of the dividend, as in C and Java."""
    if sp.sympify(divisor).is_zero:
        msg = "modulo by zero"
        raise ZeroDivisionError(msg)
    quotient = dividend / divisor
    return dividend - divisor * sp.sign(quotient) * sp.floor(sp.Abs(quotient))


class _RemainderCalls(ast.NodeTransformer):
    def visit_BinOp(self, node: ast.BinOp) -> ast.AST:
        self.generic_visit(node)
        if not isinstance(node.op, ast.Mod):
            return node
        return ast.Call(
            func=ast.Name(id=_REMAINDER, ctx=ast.Load()),
            args=[node.left, node.right],
            keywords=[],
        )


def _rewrite_remainders(text: str) -> str:
    """Turn every ``a % b`` into a call, since sympy's ``Mod`` floors."""
    tree = ast.parse(text.replace("^", "**").strip(), mode="eval")
    tree = ast.fix_missing_locations(_RemainderCalls().visit(tree))
    return ast.unparse(tree)


def _apply_bare_calls(expression: str, variables: Mapping[str, float]) -> str:
    """Turn ``sqrt 16`` into ``sqrt(16)`` for single-argument built-ins."""

    def replace(match: re.Match[str]) -> str:
        name, argument = match.group(1), match.group(2)
        if name in variables:
            return match.group(0)
        return f"{name}({argument})"

    return _BARE_CALL_RE.sub(replace, expression)


def _bind_identifiers(
    expression: str, variables: Mapping[str, float]
) -> tuple[str, dict[str, Any]]:
    """Replace every identifier with a placeholder bound in the returned namespace.

    Raises:
        EvaluationError: An identifier is neither a variable nor a built-in.
    """
    namespace: dict[str, Any] = {}

    def replace(match: re.Match[str]) -> str:
        name = match.group("name")
        if name is None:
            return match.group("number")
        if name in variables:
            placeholder = f"_nc_var_{name}"
            namespace[placeholder] = sp.Float(variables[name])
        elif name in BUILTIN_FUNCTIONS:
            placeholder = f"_nc_fn_{name}"
            namespace[placeholder] = BUILTIN_FUNCTIONS[name]
        elif name in BUILTIN_CONSTANTS:
            placeholder = f"_nc_const_{name}"
            namespace[placeholder] = BUILTIN_CONSTANTS[name]
        else:
            msg = f"Undefined identifier: {name!r}"
            raise EvaluationError(msg)
        return placeholder

    return _TOKEN_RE.sub(replace, expression), namespace


def evaluate_expression(expression: str, variables: Mapping[str, float]) -> float:
    """Evaluate ``expression`` using ``variables`` and return a finite float.

    Args:
        expression: Preprocessed expression text (no comment, no assignment).
        variables: Variable table built from earlier lines. Not modified.

    Raises:
        EvaluationError: For any failure; the cause is chained but callers
            are not expected to tell failures apart.
    """
    if not expression.strip():
        msg = "Empty expression"
        raise EvaluationError(msg)
    if not _ALLOWED_CHARS_RE.match(expression):
        msg = f"Unsupported characters in {expression!r}"
        raise EvaluationError(msg)

    text = _CONSTANT_CALL_RE.sub(
        lambda m: m.group(0) if m.group(1) in variables else m.group(1), expression
    )
    text = _apply_bare_calls(text, variables)
    text, namespace = _bind_identifiers(text, variables)

    try:
        if "%" in text:
            text = _rewrite_remainders(text)
            namespace[_REMAINDER] = _builtin(_truncated_remainder)
        parsed = parse_expr(
            text,
            local_dict=namespace,
            transformations=TRANSFORMATIONS,
            evaluate=False,
        )
        if not isinstance(parsed, sp.Basic):
            msg = f"Not a single value: {expression!r}"
            raise EvaluationError(msg)
        value = float(parsed.evalf())
    except EvaluationError:
        raise
    except (
        SyntaxError,
        TokenError,
        TypeError,
        ValueError,
        ArithmeticError,
        AttributeError,
        NameError,
        RecursionError,
    ) as e:
        msg = f"Cannot evaluate {expression!r}: {e}"
        raise EvaluationError(msg) from e

    if not math.isfinite(value):
        msg = f"Result of {expression!r} is not finite"
        raise EvaluationError(msg)
    return value
