"""Display formatting for evaluated line results."""

ERROR_MARKER = "Err"

# Whole numbers inside the signed 64-bit range print as integers. The 32-bit
# range is a subset, so a single bound covers both.
_INT64_MIN = -(2.0**63)
_INT64_LIMIT = 2.0**63


def format_result(value: float) -> str:
    """Format a float for display next to its line.

    Whole numbers are shown without a fractional part while they fit a
    64-bit integer and in ``%.2e`` notation beyond that. Everything else is
    shown with two decimals.
    """
    if value.is_integer():
        if _INT64_MIN <= value < _INT64_LIMIT:
            return str(int(value))
        return f"{value:.2e}"
    return f"{value:.2f}"
