"""
Reconstruction Pipeline
Orders a set of sections by their marker layers and stitches them into one
composite sequence.
"""

import pandas as pd
from typing import Any, Callable, Iterable, List, Optional
from dataclasses import dataclass, field

from stratastitch.ambiguity import TieBreakStrategy
from stratastitch.ordering import SectionOrder, order_sections
from stratastitch.sections import Section
from stratastitch.stitching import CombinedSequence, combine_sections


@dataclass
class ReconstructionResult:
    """Container for a full reconstruction run."""
    order: SectionOrder
    combined: CombinedSequence
    log: List[str] = field(default_factory=list)

    @property
    def df(self) -> pd.DataFrame:
        return self.combined.df

    @property
    def ordered_names(self) -> List[str]:
        return self.order.names


def reconstruct_sequence(
    sections: List[Section],
    top: Any = None,
    bottom: Any = None,
    strategy: Optional[TieBreakStrategy] = None,
    discarded_labels: Iterable[str] = (),
    progress_callback: Optional[Callable[[str, str], None]] = None
) -> ReconstructionResult:
    """
    Reconstruct one continuous sequence from overlapping sections.

    Args:
        sections: Sections in any order
        top: Optional top section (index or name); without a top or bottom
            hint the polarity is inferred heuristically
        bottom: Optional bottom section (index or name)
        strategy: Tie-break for sections linked by several markers
        discarded_labels: Marker labels to ignore for both ordering and stitching
        progress_callback: Optional callback(step, message) for progress updates

    Returns:
        ReconstructionResult
    """
    def report(step, msg):
        if progress_callback:
            progress_callback(step, msg)

    report("ordering", f"Ordering {len(sections)} sections by marker layers...")
    discarded_labels = list(discarded_labels)
    order = order_sections(sections, top=top, bottom=bottom,
                           discarded_labels=discarded_labels,
                           progress_callback=progress_callback)

    report("stitching", "Combining sections...")
    combined = combine_sections(order.apply(sections), strategy=strategy,
                                progress_callback=progress_callback,
                                discarded_labels=discarded_labels)

    return ReconstructionResult(
        order=order,
        combined=combined,
        log=order.log + combined.stitch_log,
    )
