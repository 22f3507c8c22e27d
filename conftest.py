import pytest

from stratastitch.sections import make_section


@pytest.fixture
def build_section():
    """
    Factory for synthetic sections.

    markers maps 1-based row numbers to marker labels; extra keyword
    arguments are added as columns.
    """
    def _build(name, n_rows, markers=None, **columns):
        markers = markers or {}
        records = {
            'thickness': [1.0 + 0.1 * i for i in range(n_rows)],
            'marker': [markers.get(i + 1) for i in range(n_rows)],
        }
        records.update(columns)
        return make_section(name, records)
    return _build


@pytest.fixture
def chain(build_section):
    """Four well-formed sections, top to bottom, each overlapping its neighbour by one row."""
    return [
        build_section('S0', 10, {10: 'm1'}),
        build_section('S1', 12, {1: 'm1', 12: 'm2'}),
        build_section('S2', 9, {1: 'm2', 9: 'm3'}),
        build_section('S3', 7, {1: 'm3'}),
    ]
