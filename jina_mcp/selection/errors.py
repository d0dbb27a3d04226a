"""
Errors raised by the selection engine.

Every public entry point either returns a complete result or raises one of
these before anything is returned, so callers never observe a partially
built selection.
"""


class SelectionError(Exception):
    """Base class for every failure of the selection engine."""
    pass


class InvalidInput(SelectionError):
    """
    Raised when the embeddings cannot be used.

    Examples:
    - Empty candidate pool
    - Vectors of different lengths
    - NaN or infinite components
    """
    pass


class InvalidK(SelectionError):
    """Raised when an explicit subset size is not in ``[1, n]``."""
    pass


class ComputationError(SelectionError):
    """
    Raised when an internal invariant breaks during selection.

    A marginal gain that grows between steps, turns negative or stops being
    finite means the similarity function is not monotone submodular. The
    selection is aborted instead of returning a corrupted ordering.
    """
    pass
