"""
Marker Graph Module
Derives the adjacency relation between sections from shared marker labels.

Two sections are adjacent when they carry at least one common marker label.
In a well-formed dataset the relation is a simple chain: the top and bottom
sections have one neighbour, every other section has two.
"""

import pandas as pd
from typing import Dict, FrozenSet, Iterable, List, Optional
from dataclasses import dataclass, field

from stratastitch.errors import AMBIGUOUS_ENDPOINTS, NO_ENDPOINTS, StructuralError
from stratastitch.sections import Section


@dataclass
class MarkerGraph:
    """Container for the marker adjacency relation of a set of sections."""
    names: List[str]
    label_sets: List[FrozenSet[str]]
    adjacency: List[FrozenSet[int]]
    label_sections: Dict[str, List[int]]  # {label: [section indices]}
    excluded_labels: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def degrees(self) -> List[int]:
        return [len(neighbours) for neighbours in self.adjacency]

    def shared_labels(self, i: int, j: int) -> List[str]:
        return sorted(self.label_sets[i] & self.label_sets[j])

    def to_frame(self) -> pd.DataFrame:
        """Per-section summary table (markers, neighbours, degree)."""
        return pd.DataFrame({
            'section': self.names,
            'markers': [', '.join(sorted(labels)) for labels in self.label_sets],
            'neighbours': [', '.join(self.names[j] for j in sorted(adj)) for adj in self.adjacency],
            'degree': self.degrees,
        })


def section_marker_sets(sections: Iterable[Section],
                        excluded_labels: Iterable[str] = ()) -> List[FrozenSet[str]]:
    """Distinct, non-missing marker labels per section."""
    excluded = set(excluded_labels)
    return [frozenset(l for l in s.marker_labels() if l not in excluded) for s in sections]


def build_marker_graph(sections: List[Section],
                       excluded_labels: Iterable[str] = ()) -> MarkerGraph:
    """
    Build the marker adjacency graph.

    Args:
        sections: Sections in any order
        excluded_labels: Labels to ignore (e.g. discarded redundant markers)

    Returns:
        MarkerGraph
    """
    excluded = frozenset(excluded_labels)
    label_sets = section_marker_sets(sections, excluded)

    label_sections: Dict[str, List[int]] = {}
    for i, labels in enumerate(label_sets):
        for label in labels:
            label_sections.setdefault(label, []).append(i)

    adjacency = []
    for i, labels in enumerate(label_sets):
        neighbours = set()
        for label in labels:
            neighbours.update(j for j in label_sections[label] if j != i)
        adjacency.append(frozenset(neighbours))

    return MarkerGraph(
        names=[s.name for s in sections],
        label_sets=label_sets,
        adjacency=adjacency,
        label_sections=label_sections,
        excluded_labels=excluded,
    )


def overshared_labels(graph: MarkerGraph) -> Dict[str, List[str]]:
    """
    Labels used by more than two sections.

    These indicate unresolved topology. They are reported, never repaired here.

    Returns:
        {label: [section names]}
    """
    return {
        label: [graph.names[i] for i in indices]
        for label, indices in sorted(graph.label_sections.items())
        if len(indices) > 2
    }


def find_endpoints(graph: MarkerGraph) -> List[int]:
    """
    Identify the two degree-1 sections of the chain.

    Raises:
        StructuralError: when there are not exactly two endpoints
    """
    endpoints = [i for i, d in enumerate(graph.degrees) if d == 1]

    if len(endpoints) < 2:
        raise StructuralError(
            NO_ENDPOINTS,
            f"Endpoints not identified: {len(endpoints)} section(s) with a single neighbour, expected 2",
            sections=[graph.names[i] for i in endpoints],
        )
    if len(endpoints) > 2:
        raise StructuralError(
            AMBIGUOUS_ENDPOINTS,
            f"Endpoints not identified: {len(endpoints)} sections with a single neighbour, expected 2",
            sections=[graph.names[i] for i in endpoints],
        )
    return endpoints


def neighbour_label(graph: MarkerGraph, i: int) -> Optional[str]:
    """The label linking a degree-1 section to its only neighbour (first, if several)."""
    if len(graph.adjacency[i]) != 1:
        return None
    (j,) = graph.adjacency[i]
    shared = graph.shared_labels(i, j)
    return shared[0] if shared else None
