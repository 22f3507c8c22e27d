"""
Field Mapping Module
Maps source column labels of digitized section tables to canonical fields.
"""

from typing import Dict, Iterable, List, Optional


# Accepted source labels for each canonical field, in priority order
FIELD_ALIASES = {
    'confidence_code': ['conf', 'VarveID'],
    'marker': ['Marker', 'Markers', 'Markers2', 'marker', 'markers'],
    'tie_point': ['TiePoint', 'TiePoints', 'tiePoint', 'tiepoint'],
    'thickness': ['thick', 'thickness', 'Thickness'],
}

# Segment end-point coordinates of a digitized layer boundary
GEOMETRY_COLUMNS = {
    'x1': ['x1', 'X1'],
    'x2': ['x2', 'X2'],
    'y1': ['y1', 'Y1'],
    'y2': ['y2', 'Y2'],
}

# Optional fields; a missing one triggers a data quality warning
OPTIONAL_FIELDS = ['confidence_code', 'marker', 'tie_point']

# Where the top of the sequence sits in the drawing -> (sort axis, descending)
ORIENTATIONS = {
    'top': ('y', True),
    'bottom': ('y', False),
    'right': ('x', True),
    'left': ('x', False),
}

DEFAULT_ORIENTATION = 'top'
DEFAULT_FILE_PATTERN = '*.csv'


def get_field_mapping(columns: Iterable[str],
                      aliases: Optional[Dict[str, List[str]]] = None) -> Dict[str, Optional[str]]:
    """
    Maps table columns to canonical fields based on accepted labels.

    Args:
        columns: Column labels found in the source table
        aliases: Canonical field -> accepted labels (default FIELD_ALIASES
            plus GEOMETRY_COLUMNS)

    Returns:
        Dictionary mapping canonical field to the matching source column,
        or None when the field is absent
    """
    if aliases is None:
        aliases = {**FIELD_ALIASES, **GEOMETRY_COLUMNS}

    original_keys = [str(c) for c in columns]
    keys = [k.strip().upper() for k in original_keys]

    def find_match(labels):
        """Find first matching column from list of accepted labels."""
        for label in labels:
            for i, k in enumerate(keys):
                if k == label.upper():
                    return original_keys[i]
        return None

    return {field: find_match(labels) for field, labels in aliases.items()}


def merge_aliases(overrides: Optional[Dict[str, List[str]]] = None) -> Dict[str, List[str]]:
    """
    Combine caller-supplied labels with the defaults.

    Caller labels take priority over the defaults for the same field.
    """
    merged = {field: list(labels) for field, labels in {**FIELD_ALIASES, **GEOMETRY_COLUMNS}.items()}
    for field, labels in (overrides or {}).items():
        if isinstance(labels, str):
            labels = [labels]
        merged[field] = list(labels) + [l for l in merged.get(field, []) if l not in labels]
    return merged
