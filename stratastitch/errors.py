"""
Error Taxonomy
Failures that abort a reconstruction. All of them subclass ValueError so that
callers already catching bad-input errors keep working.
"""

from typing import Optional, Sequence


# Error codes
NO_ENDPOINTS = 'NoEndpoints'
AMBIGUOUS_ENDPOINTS = 'AmbiguousEndpoints'
ORDER_MISMATCH = 'OrderMismatch'
UNRESOLVED_MARKER = 'UnresolvedMarker'
NO_MATCH = 'NoMatch'
AMBIGUOUS_MATCH = 'AmbiguousMatch'
MARKERS_OUT_OF_ORDER = 'MarkersOutOfOrder'
INSUFFICIENT_MARKERS = 'InsufficientMarkers'


class ReconstructionError(ValueError):
    """
    Base class for reconstruction failures.

    Attributes:
        code: Machine-readable error code (e.g. 'NoEndpoints')
        sections: Names of the implicated sections
        marker: Implicated marker label, if any
    """

    def __init__(self, code: str, message: str,
                 sections: Optional[Sequence[str]] = None,
                 marker: Optional[str] = None):
        self.code = code
        self.sections = list(sections) if sections else []
        self.marker = marker

        details = []
        if self.sections:
            details.append(f"sections: {', '.join(self.sections)}")
        if marker is not None:
            details.append(f"marker: {marker}")
        if details:
            message = f"{message} ({'; '.join(details)})"
        super().__init__(message)


class StructuralError(ReconstructionError):
    """Endpoints missing/ambiguous, unresolved marker sharing, walk mismatch."""


class OrderingError(ReconstructionError):
    """No match or several matches while walking the adjacency chain."""


class StitchError(ReconstructionError):
    """Boundary markers missing or out of physical order."""
