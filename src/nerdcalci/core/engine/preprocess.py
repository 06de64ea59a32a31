"""Normalize raw line text into an optional assignment target and an expression.

Each step is a standalone function so it can be exercised on its own;
``preprocess`` chains them in their fixed order.
"""

import re
from dataclasses import dataclass

from nerdcalci.errors import ParseError

_COMMENT_RE = re.compile(r"(?<!\\)#")
_VARIABLE_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

_NUMBER = r"\d+(?:\.\d+)?"
_OPERAND = rf"(?:{_NUMBER}|[A-Za-z_]\w*)"

# Order matters: "% off" must win over "% of", and the binary forms only
# match a trailing "%" that the first two rules have not consumed.
_PERCENT_RULES: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(rf"(?<![\w.])({_NUMBER})\s*%\s+off\s+({_OPERAND})"),
        r"(\2 - \2 * \1 / 100)",
    ),
    (
        re.compile(rf"(?<![\w.])({_NUMBER})\s*%\s+of\s+({_OPERAND})"),
        r"(\2 * \1 / 100)",
    ),
    (
        re.compile(rf"(?<![\w.])({_OPERAND})\s*\+\s*({_NUMBER})\s*%"),
        r"(\1 * (1 + \2 / 100))",
    ),
    (
        re.compile(rf"(?<![\w.])({_OPERAND})\s*-\s*({_NUMBER})\s*%"),
        r"(\1 * (1 - \2 / 100))",
    ),
]

_OPERATOR_GLYPHS = {"×": "*", "÷": "/"}


@dataclass(frozen=True)
class PreprocessedLine:
    """A line ready for evaluation."""

    target: str | None
    expression: str


def strip_comment(text: str) -> str:
    """Cut the text at the first unescaped ``#`` and trim it."""
    match = _COMMENT_RE.search(text)
    if match is not None:
        text = text[: match.start()]
    return text.strip()


def normalize_operators(text: str) -> str:
    """Replace the multiplication and division glyphs with ASCII operators."""
    for glyph, ascii_op in _OPERATOR_GLYPHS.items():
        text = text.replace(glyph, ascii_op)
    return text


def rewrite_percentages(text: str) -> str:
    """Rewrite natural-language percentage phrases into plain arithmetic.

    ``20% off 80`` -> ``(80 - 80 * 20 / 100)``, ``20% of 80`` ->
    ``(80 * 20 / 100)``, ``80 + 20%`` -> ``(80 * (1 + 20 / 100))`` and
    ``80 - 20%`` -> ``(80 * (1 - 20 / 100))``.
    """
    for pattern, replacement in _PERCENT_RULES:
        text = pattern.sub(replacement, text)
    return text


def split_assignment(text: str) -> tuple[str | None, str]:
    """Split ``name = expression`` into its two sides.

    Only a text holding exactly one ``=``, outside any parentheses, is an
    assignment. Anything else is returned whole with no target.
    """
    if text.count("=") != 1:
        return None, text.strip()

    depth = 0
    for index, char in enumerate(text):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif char == "=":
            if depth != 0:
                return None, text.strip()
            return text[:index].strip(), text[index + 1 :].strip()
    return None, text.strip()


def validate_variable_name(name: str) -> str:
    """Return ``name`` if it is a valid variable name, raise ParseError otherwise."""
    if not _VARIABLE_NAME_RE.match(name):
        msg = f"Invalid variable name: {name!r}"
        raise ParseError(msg)
    return name


def preprocess(text: str) -> PreprocessedLine | None:
    """Run all preprocessing steps over one raw line.

    Returns:
        None when the line is blank once its comment is removed, otherwise
        the assignment target (if any) and the expression to evaluate.

    Raises:
        ParseError: The assignment target is invalid or has nothing to assign.
    """
    stripped = strip_comment(text)
    if not stripped:
        return None

    processed = rewrite_percentages(normalize_operators(stripped))
    target, expression = split_assignment(processed)
    if target is not None:
        validate_variable_name(target)
        if not expression:
            msg = f"Nothing assigned to {target!r}"
            raise ParseError(msg)
    return PreprocessedLine(target=target, expression=expression)
