"""Tests for ordering sections along the marker chain."""
import pytest

from stratastitch.errors import (
    AMBIGUOUS_ENDPOINTS, AMBIGUOUS_MATCH, NO_ENDPOINTS, NO_MATCH,
    OrderingError, StructuralError,
)
from stratastitch.ordering import (
    POLARITY_HEURISTIC, POLARITY_HINT, POLARITY_SINGLE, order_sections,
)


def test_shuffled_chain_with_top_hint(chain):
    shuffled = [chain[2], chain[0], chain[3], chain[1]]

    result = order_sections(shuffled, top='S0')

    assert result.order == [1, 3, 0, 2]
    assert result.names == ['S0', 'S1', 'S2', 'S3']
    assert result.polarity == POLARITY_HINT
    assert sorted(result.order) == list(range(len(shuffled)))
    assert [s.name for s in result.apply(shuffled)] == result.names


def test_bottom_hint_by_index(chain):
    result = order_sections(chain, bottom=0)
    assert result.names == ['S3', 'S2', 'S1', 'S0']
    assert result.top == 3
    assert result.bottom == 0


def test_heuristic_polarity_is_flagged(chain):
    messages = []
    result = order_sections(list(reversed(chain)),
                            progress_callback=lambda step, msg: messages.append((step, msg)))

    assert result.names == ['S0', 'S1', 'S2', 'S3']
    assert result.polarity == POLARITY_HEURISTIC
    assert any(step == 'warning' and 'heuristic' in msg for step, msg in messages)


def test_heuristic_two_sections(build_section):
    a = build_section('A', 10, {10: 'm'})
    b = build_section('B', 8, {1: 'm'})

    result = order_sections([b, a])
    assert result.names == ['A', 'B']


def test_heuristic_cannot_decide(build_section):
    a = build_section('A', 10, {10: 'm'})
    b = build_section('B', 8, {8: 'm'})

    with pytest.raises(StructuralError) as excinfo:
        order_sections([a, b])
    assert excinfo.value.code == AMBIGUOUS_ENDPOINTS


def test_hint_must_be_an_endpoint(chain):
    with pytest.raises(StructuralError) as excinfo:
        order_sections(chain, top='S1')
    assert excinfo.value.code == AMBIGUOUS_ENDPOINTS


def test_contradicting_hints(chain):
    with pytest.raises(StructuralError):
        order_sections(chain, top='S0', bottom='S0')


def test_unknown_hint(chain):
    with pytest.raises(ValueError, match="Unknown section"):
        order_sections(chain, top='nope')


def test_closed_loop_fails(build_section):
    loop = [
        build_section('X', 5, {1: 'a', 5: 'b'}),
        build_section('Y', 5, {1: 'b', 5: 'c'}),
        build_section('Z', 5, {1: 'c', 5: 'a'}),
    ]
    with pytest.raises(StructuralError) as excinfo:
        order_sections(loop)
    assert excinfo.value.code == NO_ENDPOINTS


def test_label_shared_by_three_sections_is_ambiguous_match(build_section):
    sections = [
        build_section('S0', 5, {5: 'a'}),
        build_section('S1', 5, {1: 'a', 5: 'b'}),
        build_section('S2', 5, {1: 'b', 5: 'c'}),
        build_section('S3', 5, {1: 'b', 2: 'c', 5: 'd'}),
        build_section('S4', 5, {1: 'd'}),
    ]
    with pytest.raises(OrderingError) as excinfo:
        order_sections(sections, top='S0')

    assert excinfo.value.code == AMBIGUOUS_MATCH
    assert excinfo.value.sections == ['S1', 'S2', 'S3']
    assert 'b' in excinfo.value.marker


def test_discarded_label_resolves_branch(build_section):
    sections = [
        build_section('S0', 5, {5: 'a'}),
        build_section('S1', 5, {1: 'a', 4: 'x', 5: 'b'}),
        build_section('S2', 5, {1: 'b', 5: 'c'}),
        build_section('S3', 5, {1: 'c', 3: 'x', 5: 'd'}),
        build_section('S4', 5, {1: 'd'}),
    ]
    with pytest.raises(OrderingError):
        order_sections(sections, top='S0')

    result = order_sections(sections, top='S0', discarded_labels=['x'])
    assert result.names == ['S0', 'S1', 'S2', 'S3', 'S4']


def test_broken_chain_has_no_match(build_section):
    sections = [
        build_section('T', 5, {5: 'a'}),
        build_section('A', 5, {1: 'a'}),
        build_section('X', 5, {1: 'b', 5: 'c'}),
        build_section('Y', 5, {1: 'c', 5: 'd'}),
        build_section('Z', 5, {1: 'd', 5: 'b'}),
    ]
    with pytest.raises(OrderingError) as excinfo:
        order_sections(sections, top='T')
    assert excinfo.value.code == NO_MATCH
    assert excinfo.value.sections == ['A']


def test_single_section(build_section):
    result = order_sections([build_section('only', 4)])
    assert result.order == [0]
    assert result.polarity == POLARITY_SINGLE


def test_no_sections():
    with pytest.raises(ValueError, match="No sections"):
        order_sections([])


def test_duplicate_section_names_are_rejected(build_section):
    sections = [build_section('A', 4, {4: 'm1'}), build_section('A', 4, {1: 'm1'})]
    with pytest.raises(ValueError, match="Duplicate section names"):
        order_sections(sections)
