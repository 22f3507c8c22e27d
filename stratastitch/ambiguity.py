"""
Marker Ambiguity Resolution
Chooses one boundary marker per pair of consecutive sections.

Neighbouring sections sometimes share more than one marker layer, which
leaves those sections with more marker occurrences than their position in the
chain allows (one for the top and bottom sections, two otherwise). Exactly one
shared label must remain per boundary; which one is kept is delegated to a
strategy so the choice is explicit and reproducible.
"""

import numpy as np
import pandas as pd
from typing import Callable, Iterable, List, Optional, Sequence
from dataclasses import dataclass, field

from stratastitch.errors import (
    INSUFFICIENT_MARKERS, UNRESOLVED_MARKER, StitchError, StructuralError,
)
from stratastitch.sections import MARKER, Section


# Signature of a tie-break strategy: (candidates, upper, lower) -> kept label
TieBreakStrategy = Callable[[List[str], Section, Section], str]


class FirstOccurrenceStrategy:
    """Keep the candidate whose marker row is top-most in the upper section."""
    name = 'first-occurrence'

    def __call__(self, candidates: List[str], upper: Section, lower: Section) -> str:
        markers = upper.marker_values()
        return min(candidates, key=lambda label: np.flatnonzero(markers == label)[0])


class SeededRandomStrategy:
    """
    Keep a uniformly random candidate.

    The generator is seeded explicitly so repeated runs with the same seed keep
    the same markers.
    """
    name = 'seeded-random'

    def __init__(self, seed: Optional[int] = 0):
        self.seed = seed
        self.reset()

    def reset(self):
        """Restart the generator from the seed."""
        self.rng = np.random.default_rng(self.seed)

    def __call__(self, candidates: List[str], upper: Section, lower: Section) -> str:
        return str(self.rng.choice(sorted(candidates)))


@dataclass
class BoundaryResolution:
    """Container for boundary marker selection results."""
    boundaries: List[str]  # one label per consecutive pair, top to bottom
    discarded: List[str] = field(default_factory=list)
    over_subscribed: List[str] = field(default_factory=list)  # section names
    unlinked: List[str] = field(default_factory=list)
    log: List[str] = field(default_factory=list)


def expected_marker_counts(n_sections: int) -> List[int]:
    """Marker occurrences allowed by chain position (endpoints 1, interior 2)."""
    if n_sections == 1:
        return [0]
    return [1] + [2] * (n_sections - 2) + [1]


def marker_occurrence_summary(ordered_sections: Sequence[Section]) -> pd.DataFrame:
    """
    Count marker occurrences per section against the expected count.

    Returns:
        DataFrame with columns section, markers, expected, extra
    """
    counts = [
        int(s.df[MARKER].notna().sum()) if MARKER in s.df.columns else 0
        for s in ordered_sections
    ]
    summary = pd.DataFrame({
        'section': [s.name for s in ordered_sections],
        'markers': counts,
        'expected': expected_marker_counts(len(ordered_sections)) if ordered_sections else [],
    })
    summary['extra'] = (summary['markers'] - summary['expected']).clip(lower=0)
    return summary


def resolve_boundaries(
    ordered_sections: Sequence[Section],
    strategy: Optional[TieBreakStrategy] = None,
    progress_callback: Optional[Callable[[str, str], None]] = None,
    excluded_labels: Iterable[str] = ()
) -> BoundaryResolution:
    """
    Select the boundary marker between every pair of consecutive sections.

    Args:
        ordered_sections: Sections in top-to-bottom order
        strategy: Tie-break used when a pair shares several labels
            (default FirstOccurrenceStrategy)
        progress_callback: Optional callback(step, message) for progress updates
        excluded_labels: Marker labels never used as boundaries

    Returns:
        BoundaryResolution

    Raises:
        StitchError: a pair of consecutive sections shares no marker
        StructuralError: a kept marker is also used by another section, or
            sits on more than one row of a section it links
    """
    def report(step, msg):
        if progress_callback:
            progress_callback(step, msg)

    if strategy is None:
        strategy = FirstOccurrenceStrategy()
    elif hasattr(strategy, 'reset'):
        strategy.reset()

    n = len(ordered_sections)
    if n < 2:
        return BoundaryResolution(boundaries=[])

    names = [s.name for s in ordered_sections]
    excluded = set(excluded_labels)
    label_lists = [s.marker_labels() for s in ordered_sections]
    log = []

    discarded = []
    for labels in label_lists:
        for label in labels:
            if label in excluded and label not in discarded:
                discarded.append(label)
    if discarded:
        msg = f"Ignoring discarded marker layers: {', '.join(discarded)}"
        report("resolving", msg)
        log.append(msg)
    label_lists = [[label for label in labels if label not in excluded] for labels in label_lists]

    summary = marker_occurrence_summary(ordered_sections)
    over_subscribed = summary.loc[summary['extra'] > 0, 'section'].tolist()
    if over_subscribed:
        msg = f"Sections with extra marker layers: {', '.join(over_subscribed)}"
        report("resolving", msg)
        log.append(msg)

    boundaries = []
    for k in range(n - 1):
        upper, lower = ordered_sections[k], ordered_sections[k + 1]
        lower_labels = set(label_lists[k + 1])
        candidates = [label for label in label_lists[k] if label in lower_labels]

        if not candidates:
            raise StitchError(
                INSUFFICIENT_MARKERS,
                "No marker layer links consecutive sections",
                sections=[upper.name, lower.name],
            )

        if len(candidates) == 1:
            chosen = candidates[0]
        else:
            chosen = strategy(list(candidates), upper, lower)
            if chosen not in candidates:
                raise ValueError(f"Tie-break strategy returned '{chosen}', "
                                 f"expected one of {candidates}")
            dropped = [label for label in candidates if label != chosen]
            discarded.extend(dropped)
            msg = (f"{upper.name} & {lower.name}: kept marker '{chosen}', "
                   f"discarded {', '.join(repr(d) for d in dropped)}")
            report("resolving", msg)
            log.append(msg)

        boundaries.append(chosen)

    for k, label in enumerate(boundaries):
        users = [i for i, labels in enumerate(label_lists) if label in labels]
        if users != [k, k + 1]:
            raise StructuralError(
                UNRESOLVED_MARKER,
                f"Marker '{label}' is used by sections other than the pair it links",
                sections=[names[i] for i in users],
                marker=label,
            )
        for i in users:
            rows = np.flatnonzero(ordered_sections[i].marker_values() == label)
            if len(rows) > 1:
                raise StructuralError(
                    UNRESOLVED_MARKER,
                    f"Marker '{label}' appears on more than one row of a section "
                    f"(rows {', '.join(str(r + 1) for r in rows)})",
                    sections=[names[i]],
                    marker=label,
                )

    used = set(boundaries) | set(discarded)
    unlinked = []
    for name, labels in zip(names, label_lists):
        for label in labels:
            if label not in used and label not in unlinked:
                unlinked.append(label)
                msg = f"{name}: marker '{label}' links no neighbouring section - ignored"
                report("warning", msg)
                log.append(msg)

    return BoundaryResolution(
        boundaries=boundaries,
        discarded=discarded,
        over_subscribed=over_subscribed,
        unlinked=unlinked,
        log=log,
    )
