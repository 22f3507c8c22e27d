"""
Section Loader
Turns digitized section tables into Sections.

Each input table holds one row per traced layer boundary: the segment
end-points x1, x2, y1, y2 (or a ready-made thickness column) and optional
attribute columns for the confidence code, marker layer and tie point. The
loader resolves column aliases, sorts the layers from the top of the
sequence, computes thickness and drops zero-thickness layers.
"""

import glob
import io
import os
import numpy as np
import pandas as pd
from typing import Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field

from stratastitch.field_mapping import (
    DEFAULT_FILE_PATTERN, DEFAULT_ORIENTATION, GEOMETRY_COLUMNS, OPTIONAL_FIELDS,
    ORIENTATIONS, get_field_mapping, merge_aliases,
)
from stratastitch.sections import (
    LOCAL_INDEX, MARKER, THICKNESS, TIE_POINT, DataQualityWarning, Section,
    check_unique_names, make_section, normalize_markers,
)


COMMON_DELIMITERS = [',', '\t', ';', '|']
FALSE_VALUES = {'', 'false', 'f', 'no', 'n', '0', 'nan', 'none'}


@dataclass
class SectionLoadResult:
    """Container for a batch of loaded sections."""
    sections: List[Section]
    warnings: List[DataQualityWarning] = field(default_factory=list)
    log: List[str] = field(default_factory=list)


def _to_tie_flag(value) -> bool:
    if value is None or pd.isna(value):
        return False
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, float, np.integer, np.floating)):
        return value != 0
    return str(value).strip().lower() not in FALSE_VALUES


def detect_delimiter(text: str) -> str:
    """
    Detect the delimiter of a section table from its header line.

    Returns:
        Delimiter string, or a whitespace pattern when none of the common
        delimiters is present
    """
    header = next((line for line in text.splitlines() if line.strip()), '')
    counts = {delim: header.count(delim) for delim in COMMON_DELIMITERS}
    best = max(counts, key=counts.get)
    return best if counts[best] > 0 else r'\s+'


def read_table(source: Any, name: Optional[str] = None,
               default_name: str = 'Section') -> Tuple[pd.DataFrame, str]:
    """
    Read a delimited section table.

    Args:
        source: File path, raw bytes, file-like object or DataFrame
        name: Section name (defaults to the file name)
        default_name: Name used when the source carries no file name

    Returns:
        Tuple of (DataFrame, section name)
    """
    if isinstance(source, pd.DataFrame):
        return source.copy(), name or default_name

    try:
        if isinstance(source, (str, os.PathLike)):
            with open(source, 'rb') as f:
                data = f.read()
            default_name = os.path.basename(os.fspath(source))
        elif isinstance(source, bytes):
            data = source
        else:
            # File-like object (e.g., from upload)
            data = source.read()
            default_name = os.path.basename(getattr(source, 'name', default_name))

        text = data.decode("utf-8", errors="ignore") if isinstance(data, bytes) else data
        df = pd.read_csv(io.StringIO(text), sep=detect_delimiter(text), engine='python')
    except Exception as e:
        raise ValueError(f"Error reading section table: {e}")

    df.columns = [str(c).strip() for c in df.columns]
    return df, name or default_name


def _layer_thickness(df: pd.DataFrame, mapping: Dict[str, Optional[str]],
                     varve_top: str, name: str) -> Tuple[pd.DataFrame, np.ndarray]:
    """Sort layers from the top of the sequence and measure their thickness."""
    geometry = [mapping.get(c) for c in GEOMETRY_COLUMNS]

    if all(geometry):
        if varve_top not in ORIENTATIONS:
            raise ValueError(f"Unknown orientation '{varve_top}'. "
                             f"Options are {', '.join(ORIENTATIONS)}")
        coords = df[geometry].apply(pd.to_numeric, errors='coerce')
        coords.columns = list(GEOMETRY_COLUMNS)

        # remove nonfinite coordinates
        good = np.isfinite(coords.to_numpy(dtype=float)).all(axis=1)
        df, coords = df[good], coords[good]

        axis, descending = ORIENTATIONS[varve_top]
        order = coords[f'{axis}1'].sort_values(ascending=not descending, kind='mergesort').index
        df, coords = df.loc[order], coords.loc[order]
        thick = (coords[f'{axis}1'] - coords[f'{axis}2']).abs().to_numpy()
        return df, thick

    if mapping.get(THICKNESS):
        # Ready-made thickness, listed from the top
        thick = pd.to_numeric(df[mapping[THICKNESS]], errors='coerce').to_numpy(dtype=float)
        good = np.isfinite(thick)
        return df[good], thick[good]

    raise ValueError(f"{name}: no geometry columns ({', '.join(GEOMETRY_COLUMNS)}) "
                     f"or thickness column found. Columns: {', '.join(map(str, df.columns))}")


def prepare_section(
    df: pd.DataFrame,
    name: str,
    varve_top: str = DEFAULT_ORIENTATION,
    scale_to_thickness: Optional[float] = None,
    aliases: Optional[Dict[str, List[str]]] = None,
    progress_callback: Optional[Callable[[str, str], None]] = None
) -> Tuple[Section, List[DataQualityWarning]]:
    """
    Convert a raw section table into a Section.

    Args:
        df: Raw table (one row per traced layer)
        name: Section name
        varve_top: Where the top of the sequence is in the drawing:
            'top', 'bottom', 'left' or 'right'
        scale_to_thickness: Scale thicknesses so they sum to this value
            (None keeps the drawing scale)
        aliases: Extra accepted column labels per canonical field
        progress_callback: Optional callback(step, message) for progress updates

    Returns:
        Tuple of (Section, data quality warnings)
    """
    def report(step, msg):
        if progress_callback:
            progress_callback(step, msg)

    df = df.reset_index(drop=True)
    mapping = get_field_mapping(df.columns, merge_aliases(aliases))
    frame, thick = _layer_thickness(df, mapping, varve_top, name)

    # remove layers of zero thickness
    nonzero = thick > 0
    frame, thick = frame[nonzero], thick[nonzero]
    if len(frame) == 0:
        raise ValueError(f"{name}: no layers with non-zero thickness")

    out = pd.DataFrame({
        LOCAL_INDEX: np.arange(1, len(frame) + 1),
        THICKNESS: thick,
    })

    warnings = []
    for field_name in OPTIONAL_FIELDS:
        column = mapping.get(field_name)
        if column is None:
            warning = DataQualityWarning(
                section=name,
                field=field_name,
                message=f"no {field_name.replace('_', ' ')} column. "
                        f"Available columns: {', '.join(map(str, df.columns))}",
            )
            warnings.append(warning)
            report("warning", str(warning))
            continue

        values = frame[column].reset_index(drop=True)
        if field_name == MARKER:
            values = normalize_markers(values)
        elif field_name == TIE_POINT:
            values = values.map(_to_tie_flag).astype(bool)
        out[field_name] = values

    if scale_to_thickness is not None and not pd.isna(scale_to_thickness):
        out[THICKNESS] = out[THICKNESS] * (scale_to_thickness / out[THICKNESS].sum())

    section = make_section(name, out)
    report("loading", f"{name}: {len(section)} layers "
           f"(total thickness {section.df[THICKNESS].sum():.2f})")
    return section, warnings


def load_section(
    source: Any,
    name: Optional[str] = None,
    default_name: str = 'Section',
    varve_top: str = DEFAULT_ORIENTATION,
    scale_to_thickness: Optional[float] = None,
    aliases: Optional[Dict[str, List[str]]] = None,
    progress_callback: Optional[Callable[[str, str], None]] = None
) -> Tuple[Section, List[DataQualityWarning]]:
    """
    Load one section table from a path, bytes, file-like object or DataFrame.

    See prepare_section() for the options.
    """
    df, section_name = read_table(source, name, default_name)
    return prepare_section(df, section_name, varve_top=varve_top,
                           scale_to_thickness=scale_to_thickness, aliases=aliases,
                           progress_callback=progress_callback)


def load_sections(
    sources: List[Any],
    varve_top: str = DEFAULT_ORIENTATION,
    scale_to_thickness: Optional[float] = None,
    aliases: Optional[Dict[str, List[str]]] = None,
    progress_callback: Optional[Callable[[str, str], None]] = None
) -> SectionLoadResult:
    """
    Load several section tables, keeping their input order.

    Sources without a file name are named 'Section 1', 'Section 2', ... by
    position.
    """
    def report(step, msg):
        if progress_callback:
            progress_callback(step, msg)

    if not sources:
        raise ValueError("No section files to load")

    sections = []
    warnings = []
    log = []
    for i, source in enumerate(sources, start=1):
        section, section_warnings = load_section(
            source, default_name=f"Section {i}", varve_top=varve_top,
            scale_to_thickness=scale_to_thickness, aliases=aliases,
            progress_callback=progress_callback,
        )
        sections.append(section)
        warnings.extend(section_warnings)
        log.append(f"{section.name}: {len(section)} layers")
        log.extend(str(w) for w in section_warnings)

    check_unique_names(sections)
    report("loading", f"Loaded {len(sections)} sections")
    return SectionLoadResult(sections=sections, warnings=warnings, log=log)


def load_section_directory(
    directory: str,
    pattern: str = DEFAULT_FILE_PATTERN,
    varve_top: str = DEFAULT_ORIENTATION,
    scale_to_thickness: Optional[float] = None,
    aliases: Optional[Dict[str, List[str]]] = None,
    progress_callback: Optional[Callable[[str, str], None]] = None
) -> SectionLoadResult:
    """
    Load every section table in a directory, sorted by file name.

    Args:
        directory: Directory to scan
        pattern: Glob pattern of section files
    """
    paths = sorted(glob.glob(os.path.join(directory, pattern)))
    if not paths:
        raise ValueError(f"No files matching '{pattern}' in {directory}")
    return load_sections(paths, varve_top=varve_top, scale_to_thickness=scale_to_thickness,
                         aliases=aliases, progress_callback=progress_callback)
