class InvalidGridError(ValueError):
    """Raised when a grid cannot be used to build a graph (no focal cells,
    `NaN` or negative resistance, unknown land cover class)."""


class DisconnectedGridError(UserWarning):
    """Issued when some patches cannot reach any other patch.

    Isolated patches are kept as singleton nodes of the graph, so this is
    emitted with `warnings.warn` rather than raised.
    """


class InconsistentGraphError(ValueError):
    """Raised when links reference unknown patches or are otherwise invalid."""


class IndexOutOfRangeError(IndexError):
    """Raised when selecting a grain outside of the sweep."""
