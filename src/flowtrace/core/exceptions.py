"""
Exceptions raised by the flow network engine.

All errors derive from FlowNetworkError so callers can catch the whole family,
while each condition stays distinct for targeted handling.
"""


class FlowNetworkError(Exception):
    """Base class for flow network errors."""

    pass


class InvalidInputError(FlowNetworkError, ValueError):
    """Raised when a segment table or query argument is malformed."""

    pass


class NotFoundError(FlowNetworkError, KeyError):
    """Raised when a query references an identifier absent from the graph."""

    def __init__(self, message: str, segment_id: object = None) -> None:
        self.segment_id = segment_id
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class GraphIntegrityError(FlowNetworkError):
    """Raised when the flow relation contains a cycle."""

    def __init__(self, message: str, segment_ids: list | None = None) -> None:
        self.segment_ids = segment_ids or []
        super().__init__(message)


class AmbiguousOutletError(FlowNetworkError):
    """Raised when distance computation cannot settle on a single outlet."""

    def __init__(self, message: str, outlet_ids: list | None = None) -> None:
        self.outlet_ids = outlet_ids or []
        super().__init__(message)
