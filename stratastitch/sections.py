"""
Section Data Model
Canonical columns, the immutable Section container and section validation.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


# Canonical measurement columns
LOCAL_INDEX = 'local_index'
THICKNESS = 'thickness'
CONFIDENCE_CODE = 'confidence_code'
MARKER = 'marker'
TIE_POINT = 'tie_point'

MEASUREMENT_COLUMNS = [LOCAL_INDEX, THICKNESS, CONFIDENCE_CODE, MARKER, TIE_POINT]

# Provenance columns added when sections are combined
GLOBAL_INDEX = 'global_index'
SOURCE_SECTION = 'source_section'
SECTION_LOCAL_INDEX = 'section_local_index'


@dataclass(frozen=True, eq=False)
class Section:
    """One independently digitized core section."""
    name: str
    df: pd.DataFrame  # Measurements, top to bottom

    def __len__(self):
        return len(self.df)

    @property
    def has_markers(self) -> bool:
        return MARKER in self.df.columns and self.df[MARKER].notna().any()

    def marker_values(self) -> np.ndarray:
        """Marker column as an object array (NaN where the row is not a marker)."""
        if MARKER not in self.df.columns:
            return np.full(len(self.df), np.nan, dtype=object)
        return self.df[MARKER].to_numpy(dtype=object)

    def marker_labels(self) -> List[str]:
        """Distinct marker labels in top-to-bottom order of first appearance."""
        if MARKER not in self.df.columns:
            return []
        return list(pd.unique(self.df[MARKER].dropna()))


@dataclass
class DataQualityWarning:
    """Non-fatal notice that an optional field is absent from a section."""
    section: str
    field: str
    message: str

    def __str__(self):
        return f"{self.section} - {self.message}"


def _clean_marker(value):
    if value is None or pd.isna(value):
        return np.nan
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        # numeric labels read from text files arrive as floats
        value = int(value)
    text = str(value).strip()
    return text if text else np.nan


def normalize_markers(series: pd.Series) -> pd.Series:
    """Strip marker labels; blank labels become missing."""
    return series.map(_clean_marker).astype(object)


def make_section(name: str, records: Any) -> 'Section':
    """
    Build a Section from measurement records.

    Args:
        name: Section identifier (e.g. source file name)
        records: DataFrame, list of dicts or dict of columns holding at least
            a 'thickness' column; 'local_index' is generated as 1..n when absent

    Returns:
        Validated Section
    """
    df = pd.DataFrame(records).copy()

    if THICKNESS not in df.columns:
        raise ValueError(f"{name}: measurements must have a '{THICKNESS}' column")

    if LOCAL_INDEX not in df.columns:
        df.insert(0, LOCAL_INDEX, np.arange(1, len(df) + 1))

    if MARKER in df.columns:
        df[MARKER] = normalize_markers(df[MARKER])

    ordered = [c for c in MEASUREMENT_COLUMNS if c in df.columns]
    extra = [c for c in df.columns if c not in ordered]
    df = df[ordered + extra].reset_index(drop=True)

    section = Section(name=name, df=df)
    check_section(section)
    return section


def validate_section(section: Section) -> Dict[str, Any]:
    """
    Validate a section and return a validation report.

    Args:
        section: Section to check

    Returns:
        Dictionary with 'is_valid', 'issues' and 'warnings'
    """
    report = {
        'is_valid': True,
        'issues': [],
        'warnings': [],
    }
    df = section.df

    if df.empty:
        report['is_valid'] = False
        report['issues'].append("No measurement rows found")
        return report

    for col in (LOCAL_INDEX, THICKNESS):
        if col not in df.columns:
            report['is_valid'] = False
            report['issues'].append(f"Missing '{col}' column")
    if not report['is_valid']:
        return report

    thickness = pd.to_numeric(df[THICKNESS], errors='coerce')
    if thickness.isna().any() or (thickness <= 0).any():
        report['is_valid'] = False
        report['issues'].append("Thickness must be a positive number on every row")

    if not df[LOCAL_INDEX].is_monotonic_increasing or df[LOCAL_INDEX].duplicated().any():
        report['is_valid'] = False
        report['issues'].append("Local index must be strictly increasing")

    if MARKER in df.columns:
        repeated = df[MARKER].dropna()
        repeated = repeated[repeated.duplicated()].unique()
        for label in repeated:
            report['warnings'].append(f"Marker '{label}' appears on more than one row")

    return report


def check_section(section: Section) -> None:
    """Raise ValueError when a section fails validation."""
    report = validate_section(section)
    if not report['is_valid']:
        raise ValueError(f"{section.name}: {'; '.join(report['issues'])}")


def find_section(sections: List[Section], key: Any) -> Optional[int]:
    """
    Resolve a section reference (index or name) to its position.

    Returns:
        Index into sections, or None if key is None
    """
    if key is None:
        return None
    if isinstance(key, (int, np.integer)) and not isinstance(key, bool):
        if 0 <= key < len(sections):
            return int(key)
        raise ValueError(f"Section index {key} out of range (0-{len(sections) - 1})")
    for i, section in enumerate(sections):
        if section.name == key:
            return i
    raise ValueError(f"Unknown section: {key}")



def check_unique_names(sections: List[Section]) -> None:
    """Raise ValueError when two sections share a name."""
    names = pd.Series([s.name for s in sections], dtype=object)
    duplicated = names[names.duplicated()].unique().tolist()
    if duplicated:
        raise ValueError(f"Duplicate section names: {', '.join(map(str, duplicated))}")
