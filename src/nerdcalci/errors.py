"""Exception hierarchy for nerdcalci."""


class NerdCalciError(Exception):
    """Base class for all nerdcalci errors."""


class ParseError(NerdCalciError):
    """A line could not be split into an assignment target and expression."""


class EvaluationError(NerdCalciError):
    """An expression could not be evaluated to a finite real number."""


class StorageError(NerdCalciError):
    """Reading or writing an archive or backup location failed."""


class DocumentNotFoundError(NerdCalciError):
    """No document exists with the requested id."""


class PinLimitError(NerdCalciError):
    """Pinning another document would exceed the pinned-document cap."""
