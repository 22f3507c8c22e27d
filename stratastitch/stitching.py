"""
Section Stitching Module
Merges ordered sections into one continuous, duplicate-free sequence.

Adjacent digitizations both record the layers around their shared marker.
Each output segment therefore runs from just below the LAST occurrence of the
previous boundary marker to the FIRST occurrence of the next one, so every
physical layer is kept exactly once:
1. Concatenate all sections (top to bottom) into one raw table
2. Pick one boundary marker per pair of consecutive sections
3. Cut the raw table between consecutive boundary markers
4. Renumber the result with a contiguous global index
"""

import numpy as np
import pandas as pd
from typing import Callable, Iterable, List, Optional, Sequence
from dataclasses import dataclass, field

from stratastitch.ambiguity import TieBreakStrategy, resolve_boundaries
from stratastitch.errors import MARKERS_OUT_OF_ORDER, StitchError
from stratastitch.sections import (
    GLOBAL_INDEX, LOCAL_INDEX, MARKER, MEASUREMENT_COLUMNS, SECTION_LOCAL_INDEX,
    SOURCE_SECTION, THICKNESS, Section, check_unique_names,
)


@dataclass
class CombinedSequence:
    """Container for stitching results."""
    df: pd.DataFrame
    boundaries: List[str]
    discarded_labels: List[str]
    section_summary: List[dict]
    stitch_log: List[str]
    num_sections: int
    total_thickness: float
    unlinked_labels: List[str] = field(default_factory=list)

    def __len__(self):
        return len(self.df)


def concatenate_sections(ordered_sections: Sequence[Section]) -> pd.DataFrame:
    """
    Stack section measurements top to bottom, tagging provenance.

    Returns:
        DataFrame with the measurement columns plus source_section and
        section_local_index, indexed 0..n-1
    """
    frames = []
    for section in ordered_sections:
        part = section.df.copy()
        part[SOURCE_SECTION] = section.name
        part[SECTION_LOCAL_INDEX] = part[LOCAL_INDEX]
        frames.append(part.drop(columns=[LOCAL_INDEX]))

    return pd.concat(frames, ignore_index=True, sort=False)


def _occurrences(markers: np.ndarray, label: str) -> np.ndarray:
    return np.flatnonzero(markers == label)


def stitch_rows(raw: pd.DataFrame, boundaries: List[str]) -> np.ndarray:
    """
    Row positions of the raw table that make up the combined sequence.

    Args:
        raw: Concatenated sections from concatenate_sections()
        boundaries: Boundary marker labels, top to bottom

    Returns:
        Integer array of raw row positions, in output order

    Raises:
        StitchError: when a boundary marker starts before the previous one ends,
            or the result is shorter than the longest section
    """
    if not boundaries:
        return np.arange(len(raw))

    markers = raw[MARKER].to_numpy(dtype=object)

    sp = _occurrences(markers, boundaries[0])[0]
    segments = [np.arange(0, sp + 1)]

    for previous, current in zip(boundaries[:-1], boundaries[1:]):
        # second instance of the previous marker
        st = _occurrences(markers, previous)[-1]
        # first instance of the next marker
        sp = _occurrences(markers, current)[0]

        if sp <= st:
            raise StitchError(
                MARKERS_OUT_OF_ORDER,
                f"Marker layers '{previous}' & '{current}' out of order",
                sections=list(pd.unique(raw[SOURCE_SECTION].iloc[[st, sp]])),
                marker=f"{previous}, {current}",
            )
        segments.append(np.arange(st + 1, sp + 1))

    st = _occurrences(markers, boundaries[-1])[-1]
    segments.append(np.arange(st + 1, len(raw)))

    keep = np.concatenate(segments)

    # a correctly ordered chain is never shorter than any one of its sections
    lengths = raw.groupby(SOURCE_SECTION, sort=False).size()
    if len(keep) < lengths.max():
        raise StitchError(
            MARKERS_OUT_OF_ORDER,
            f"Stitching keeps {len(keep)} rows, fewer than section "
            f"{lengths.idxmax()} holds ({lengths.max()}); sections look reversed",
            sections=lengths.index.tolist(),
            marker=', '.join(boundaries),
        )

    return keep


def _output_columns(columns) -> List[str]:
    leading = [GLOBAL_INDEX] + [c for c in MEASUREMENT_COLUMNS if c != LOCAL_INDEX and c in columns]
    trailing = [SOURCE_SECTION, SECTION_LOCAL_INDEX]
    extra = [c for c in columns if c not in leading and c not in trailing]
    return leading + extra + trailing


def combine_sections(
    ordered_sections: Sequence[Section],
    strategy: Optional[TieBreakStrategy] = None,
    progress_callback: Optional[Callable[[str, str], None]] = None,
    discarded_labels: Iterable[str] = ()
) -> CombinedSequence:
    """
    Combine sections in stratigraphic order into one continuous sequence.

    Args:
        ordered_sections: Sections in top-to-bottom order
        strategy: Tie-break for sections linked by several markers
            (see stratastitch.ambiguity)
        progress_callback: Optional callback(step, message) for progress updates
        discarded_labels: Marker labels never used as boundaries

    Returns:
        CombinedSequence with the merged table and stitching metadata

    Raises:
        StitchError: boundary markers missing or out of order
        StructuralError: a boundary marker is shared beyond its pair
    """
    def report(step, msg):
        if progress_callback:
            progress_callback(step, msg)

    if len(ordered_sections) == 0:
        raise ValueError("No sections to combine")
    check_unique_names(ordered_sections)

    raw = concatenate_sections(ordered_sections)
    report("stitching", f"Concatenated {len(ordered_sections)} sections ({len(raw)} rows)")

    resolution = resolve_boundaries(ordered_sections, strategy, progress_callback,
                                    excluded_labels=discarded_labels)
    stitch_log = list(resolution.log)

    if resolution.boundaries:
        stitch_log.append(f"Boundary markers: {', '.join(resolution.boundaries)}")
    else:
        stitch_log.append(f"Single section {ordered_sections[0].name} - no stitching required")

    keep = stitch_rows(raw, resolution.boundaries)

    combined = raw.iloc[keep].reset_index(drop=True)
    combined.insert(0, GLOBAL_INDEX, np.arange(1, len(combined) + 1))
    combined = combined[_output_columns(combined.columns)]

    section_summary = []
    for section in ordered_sections:
        kept = combined.loc[combined[SOURCE_SECTION] == section.name, SECTION_LOCAL_INDEX]
        section_summary.append({
            'section': section.name,
            'rows': len(section),
            'rows_kept': len(kept),
            'rows_dropped': len(section) - len(kept),
            'first_kept': int(kept.iloc[0]) if len(kept) else None,
            'last_kept': int(kept.iloc[-1]) if len(kept) else None,
        })
        if len(kept) < len(section):
            stitch_log.append(f"{section.name}: kept {len(kept)} of {len(section)} rows")

    total_thickness = float(combined[THICKNESS].sum())
    msg = (f"Combined sequence: {len(combined)} rows from {len(ordered_sections)} sections "
           f"(total thickness {total_thickness:.2f})")
    report("complete", msg)
    stitch_log.append(msg)

    return CombinedSequence(
        df=combined,
        boundaries=resolution.boundaries,
        discarded_labels=resolution.discarded,
        section_summary=section_summary,
        stitch_log=stitch_log,
        num_sections=len(ordered_sections),
        total_thickness=total_thickness,
        unlinked_labels=resolution.unlinked,
    )
