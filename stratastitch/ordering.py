"""
Sequence Ordering Module
Determines the top-to-bottom order of sections by walking the marker graph.

The walk starts at the top endpoint and repeatedly places the single
unplaced section that shares a marker with the last placed one:
1. Identify the two endpoints (degree-1 sections)
2. Decide which endpoint is the top (explicit hint, else a flagged heuristic)
3. Walk the chain, failing on broken or branching links
4. Verify the walk ends on the bottom endpoint
"""

import numpy as np
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from dataclasses import dataclass, field

from stratastitch.errors import (
    AMBIGUOUS_ENDPOINTS, AMBIGUOUS_MATCH, NO_MATCH, ORDER_MISMATCH,
    OrderingError, StructuralError,
)
from stratastitch.marker_graph import (
    MarkerGraph, build_marker_graph, find_endpoints, neighbour_label, overshared_labels,
)
from stratastitch.sections import Section, check_unique_names, find_section


POLARITY_HINT = 'hint'
POLARITY_HEURISTIC = 'heuristic'
POLARITY_SINGLE = 'single'


@dataclass
class SectionOrder:
    """Container for ordering results."""
    order: List[int]  # section indices, top to bottom
    names: List[str]
    top: int
    bottom: int
    polarity: str  # 'hint', 'heuristic' or 'single'
    flagged_labels: Dict[str, List[str]] = field(default_factory=dict)
    log: List[str] = field(default_factory=list)

    def apply(self, sections: List[Section]) -> List[Section]:
        """Return sections rearranged in this order."""
        return [sections[i] for i in self.order]


def _marker_position(section: Section, label: str) -> Optional[float]:
    """Relative position (0 = top row, 1 = bottom row) of a marker in a section."""
    rows = np.flatnonzero(section.marker_values() == label)
    if len(rows) == 0:
        return None
    if len(section) == 1:
        return 0.5
    return float(rows.mean()) / (len(section) - 1)


def infer_polarity(sections: List[Section], graph: MarkerGraph,
                   endpoints: List[int]) -> Tuple[int, int]:
    """
    Heuristically decide which endpoint is the top of the composite.

    The overlap shared with the neighbour sits at the lower end of the top
    section and at the upper end of the bottom section, so an endpoint whose
    linking marker lies in its lower half is taken as the top. This is a guess
    based on digitization habits; prefer passing an explicit hint.

    Returns:
        Tuple of (top_index, bottom_index)

    Raises:
        StructuralError: when both endpoints look alike
    """
    tops, bottoms = [], []
    for i in endpoints:
        label = neighbour_label(graph, i)
        position = _marker_position(sections[i], label) if label is not None else None
        if position is None or position == 0.5:
            continue
        (tops if position > 0.5 else bottoms).append(i)

    if len(tops) == 1 and len(bottoms) == 1:
        return tops[0], bottoms[0]

    raise StructuralError(
        AMBIGUOUS_ENDPOINTS,
        "Cannot identify a top and bottom section from marker positions; "
        "pass an explicit top or bottom section",
        sections=[graph.names[i] for i in endpoints],
    )


def resolve_polarity(sections: List[Section], graph: MarkerGraph, endpoints: List[int],
                     top: Any = None, bottom: Any = None) -> Tuple[int, int, str]:
    """
    Assign the top/bottom roles to the two endpoints.

    Args:
        top: Optional top section (index or name) supplied by the caller
        bottom: Optional bottom section (index or name) supplied by the caller

    Returns:
        Tuple of (top_index, bottom_index, polarity source)
    """
    top_idx = find_section(sections, top)
    bottom_idx = find_section(sections, bottom)

    for role, idx in (('top', top_idx), ('bottom', bottom_idx)):
        if idx is not None and idx not in endpoints:
            raise StructuralError(
                AMBIGUOUS_ENDPOINTS,
                f"Requested {role} section is not an endpoint of the marker chain",
                sections=[graph.names[idx]] + [graph.names[i] for i in endpoints],
            )

    if top_idx is not None and bottom_idx is not None:
        if top_idx == bottom_idx:
            raise StructuralError(
                AMBIGUOUS_ENDPOINTS,
                "Top and bottom hints name the same section",
                sections=[graph.names[top_idx]],
            )
        return top_idx, bottom_idx, POLARITY_HINT

    if top_idx is not None:
        other = [i for i in endpoints if i != top_idx][0]
        return top_idx, other, POLARITY_HINT

    if bottom_idx is not None:
        other = [i for i in endpoints if i != bottom_idx][0]
        return other, bottom_idx, POLARITY_HINT

    top_idx, bottom_idx = infer_polarity(sections, graph, endpoints)
    return top_idx, bottom_idx, POLARITY_HEURISTIC


def walk_chain(graph: MarkerGraph, top: int) -> List[int]:
    """
    Walk the adjacency relation from the top section.

    Returns:
        Section indices in walk order (a permutation of all sections)

    Raises:
        OrderingError: on a broken chain or a branching match
    """
    n = len(graph.names)
    order: List[Optional[int]] = [None] * n
    placed = set()

    order[0] = top
    placed.add(top)

    for position in range(1, n):
        previous = order[position - 1]
        matches = sorted(j for j in graph.adjacency[previous] if j not in placed)

        if len(matches) == 0:
            raise OrderingError(
                NO_MATCH,
                f"No matching boundary found below position {position}",
                sections=[graph.names[previous]],
            )
        if len(matches) > 1:
            labels = sorted({l for j in matches for l in graph.shared_labels(previous, j)})
            raise OrderingError(
                AMBIGUOUS_MATCH,
                f"Ambiguous boundary match below position {position}; "
                "marker layers should link exactly one pair of sections",
                sections=[graph.names[previous]] + [graph.names[j] for j in matches],
                marker=', '.join(labels),
            )

        order[position] = matches[0]
        placed.add(matches[0])

    return order


def order_sections(
    sections: List[Section],
    top: Any = None,
    bottom: Any = None,
    discarded_labels: Iterable[str] = (),
    progress_callback: Optional[Callable[[str, str], None]] = None
) -> SectionOrder:
    """
    Determine the top-to-bottom order of sections from shared marker labels.

    Args:
        sections: Sections in arbitrary order
        top: Optional top section hint (index or name)
        bottom: Optional bottom section hint (index or name)
        discarded_labels: Caller-supplied marker labels known to be unreliable;
            they are not used for linking. Labels shared by more than two
            sections are only flagged in the result, never discarded here.
        progress_callback: Optional callback(step, message) for progress updates

    Returns:
        SectionOrder with the order and how its polarity was decided

    Raises:
        StructuralError: endpoints missing/ambiguous or walk ending elsewhere
        OrderingError: broken or branching chain
    """
    def report(step, msg):
        if progress_callback:
            progress_callback(step, msg)

    if len(sections) == 0:
        raise ValueError("No sections to order")
    check_unique_names(sections)

    log = []
    names = [s.name for s in sections]

    if len(sections) == 1:
        log.append(f"Single section {names[0]} - no ordering required")
        return SectionOrder(order=[0], names=names, top=0, bottom=0,
                            polarity=POLARITY_SINGLE, log=log)

    graph = build_marker_graph(sections, discarded_labels)
    report("graph", f"Built marker graph for {len(sections)} sections "
           f"({len(graph.label_sections)} distinct marker labels)")

    flagged = overshared_labels(graph)
    for label, owners in flagged.items():
        msg = f"Marker '{label}' is shared by {len(owners)} sections ({', '.join(owners)})"
        report("warning", msg)
        log.append(msg)

    endpoints = find_endpoints(graph)
    top_idx, bottom_idx, polarity = resolve_polarity(sections, graph, endpoints, top, bottom)

    if polarity == POLARITY_HEURISTIC:
        msg = (f"Top/bottom inferred heuristically from marker positions: "
               f"top={names[top_idx]}, bottom={names[bottom_idx]}")
        report("warning", msg)
    else:
        msg = f"Top/bottom from hint: top={names[top_idx]}, bottom={names[bottom_idx]}"
        report("ordering", msg)
    log.append(msg)

    order = walk_chain(graph, top_idx)

    if order[-1] != bottom_idx:
        raise StructuralError(
            ORDER_MISMATCH,
            "Marker chain walk did not end on the bottom endpoint",
            sections=[names[order[-1]], names[bottom_idx]],
        )

    msg = f"Order: {' -> '.join(names[i] for i in order)}"
    report("ordering", msg)
    log.append(msg)

    return SectionOrder(
        order=order,
        names=[names[i] for i in order],
        top=top_idx,
        bottom=bottom_idx,
        polarity=polarity,
        flagged_labels=flagged,
        log=log,
    )
