"""Reconstruct composite varve sequences from overlapping core sections."""

from stratastitch.errors import ReconstructionError, StructuralError, OrderingError, StitchError
from stratastitch.sections import Section, DataQualityWarning, make_section, validate_section
from stratastitch.marker_graph import build_marker_graph, find_endpoints, overshared_labels
from stratastitch.ambiguity import (
    FirstOccurrenceStrategy, SeededRandomStrategy, resolve_boundaries, marker_occurrence_summary,
)
from stratastitch.ordering import SectionOrder, order_sections
from stratastitch.stitching import CombinedSequence, combine_sections
from stratastitch.section_loader import load_section, load_sections, load_section_directory
from stratastitch.pipeline import ReconstructionResult, reconstruct_sequence

__all__ = [
    'ReconstructionError', 'StructuralError', 'OrderingError', 'StitchError',
    'Section', 'DataQualityWarning', 'make_section', 'validate_section',
    'build_marker_graph', 'find_endpoints', 'overshared_labels',
    'FirstOccurrenceStrategy', 'SeededRandomStrategy', 'resolve_boundaries',
    'marker_occurrence_summary',
    'SectionOrder', 'order_sections',
    'CombinedSequence', 'combine_sections',
    'load_section', 'load_sections', 'load_section_directory',
    'ReconstructionResult', 'reconstruct_sequence',
]
