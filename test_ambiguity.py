"""Tests for choosing boundary markers between consecutive sections."""
import pytest

from stratastitch.ambiguity import (
    FirstOccurrenceStrategy, SeededRandomStrategy, expected_marker_counts,
    marker_occurrence_summary, resolve_boundaries,
)
from stratastitch.errors import (
    INSUFFICIENT_MARKERS, UNRESOLVED_MARKER, StitchError, StructuralError,
)


@pytest.fixture
def redundant(build_section):
    """B and C share two marker layers."""
    return [
        build_section('A', 6, {6: 'm1'}),
        build_section('B', 10, {1: 'm1', 9: 'm2', 10: 'm2b'}),
        build_section('C', 8, {1: 'm2', 2: 'm2b'}),
    ]


def test_expected_counts():
    assert expected_marker_counts(1) == [0]
    assert expected_marker_counts(2) == [1, 1]
    assert expected_marker_counts(4) == [1, 2, 2, 1]


def test_occurrence_summary(redundant):
    summary = marker_occurrence_summary(redundant)

    assert summary['markers'].tolist() == [1, 3, 2]
    assert summary['expected'].tolist() == [1, 2, 1]
    assert summary['extra'].tolist() == [0, 1, 1]


def test_well_formed_chain_needs_no_tie_break(chain):
    result = resolve_boundaries(chain)

    assert result.boundaries == ['m1', 'm2', 'm3']
    assert result.discarded == []
    assert result.over_subscribed == []


def test_first_occurrence_keeps_upper_marker(redundant):
    result = resolve_boundaries(redundant, FirstOccurrenceStrategy())

    assert result.boundaries == ['m1', 'm2']
    assert result.discarded == ['m2b']
    assert result.over_subscribed == ['B', 'C']


def test_default_strategy_is_first_occurrence(redundant):
    assert resolve_boundaries(redundant).boundaries == ['m1', 'm2']


def test_seeded_strategy_is_reproducible(redundant):
    first = resolve_boundaries(redundant, SeededRandomStrategy(seed=42))
    second = resolve_boundaries(redundant, SeededRandomStrategy(seed=42))

    assert first.boundaries == second.boundaries
    assert first.boundaries[1] in ('m2', 'm2b')
    assert len(first.discarded) == 1
    assert set(first.discarded + first.boundaries[1:]) == {'m2', 'm2b'}


def test_caller_supplied_strategy(redundant):
    calls = []

    def keep_last(candidates, upper, lower):
        calls.append((list(candidates), upper.name, lower.name))
        return candidates[-1]

    result = resolve_boundaries(redundant, keep_last)

    assert calls == [(['m2', 'm2b'], 'B', 'C')]
    assert result.boundaries == ['m1', 'm2b']
    assert result.discarded == ['m2']


def test_strategy_must_pick_a_candidate(redundant):
    with pytest.raises(ValueError, match="Tie-break strategy"):
        resolve_boundaries(redundant, lambda candidates, upper, lower: 'elsewhere')


def test_unlinked_pair_is_insufficient(build_section):
    sections = [
        build_section('A', 4, {4: 'm1'}),
        build_section('B', 4, {4: 'm2'}),
    ]
    with pytest.raises(StitchError) as excinfo:
        resolve_boundaries(sections)
    assert excinfo.value.code == INSUFFICIENT_MARKERS
    assert excinfo.value.sections == ['A', 'B']


def test_marker_beyond_its_pair_is_unresolved(build_section):
    sections = [
        build_section('A', 4, {4: 'm1'}),
        build_section('B', 6, {1: 'm1', 6: 'm2'}),
        build_section('C', 6, {1: 'm1', 2: 'm2'}),
    ]
    with pytest.raises(StructuralError) as excinfo:
        resolve_boundaries(sections)
    assert excinfo.value.code == UNRESOLVED_MARKER
    assert excinfo.value.marker == 'm1'


def test_unlinked_marker_is_reported(build_section):
    messages = []
    sections = [
        build_section('A', 6, {3: 'solo', 6: 'm1'}),
        build_section('B', 6, {1: 'm1'}),
    ]
    result = resolve_boundaries(sections,
                                progress_callback=lambda step, msg: messages.append((step, msg)))

    assert result.boundaries == ['m1']
    assert result.unlinked == ['solo']
    assert result.over_subscribed == ['A']
    assert any(step == 'warning' and 'solo' in msg for step, msg in messages)


def test_single_section_has_no_boundaries(build_section):
    result = resolve_boundaries([build_section('A', 4, {2: 'm1'})])
    assert result.boundaries == []


def test_reused_seeded_strategy_repeats_its_picks(redundant):
    strategy = SeededRandomStrategy(seed=3)
    expected = resolve_boundaries(redundant, SeededRandomStrategy(seed=3)).boundaries

    for _ in range(5):
        assert resolve_boundaries(redundant, strategy).boundaries == expected


def test_boundary_marker_on_two_rows_is_unresolved(build_section):
    sections = [
        build_section('A', 10, {10: 'm1'}),
        build_section('B', 8, {1: 'm1', 6: 'm1'}),
    ]
    with pytest.raises(StructuralError) as excinfo:
        resolve_boundaries(sections)
    assert excinfo.value.code == UNRESOLVED_MARKER
    assert excinfo.value.sections == ['B']
    assert 'rows 1, 6' in str(excinfo.value)


def test_excluded_labels_are_discarded(redundant):
    messages = []
    result = resolve_boundaries(redundant, excluded_labels=['m2'],
                                progress_callback=lambda step, msg: messages.append((step, msg)))

    assert result.boundaries == ['m1', 'm2b']
    assert result.discarded == ['m2']
    assert result.unlinked == []
    assert any('Ignoring discarded marker layers: m2' in msg for _, msg in messages)
