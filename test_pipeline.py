"""End-to-end test: section tables on disk -> combined sequence."""
import pytest

from stratastitch.errors import ReconstructionError
from stratastitch.ordering import POLARITY_HEURISTIC, POLARITY_HINT
from stratastitch.pipeline import reconstruct_sequence
from stratastitch.section_loader import load_section_directory


def write_section(path, n_rows, markers):
    """Write a vertical section table with 1-unit layers, top row first."""
    lines = ["x1,x2,y1,y2,Marker,conf"]
    for i in range(n_rows):
        top = float(n_rows - i)
        lines.append(f"0,1,{top},{top - 1},{markers.get(i + 1, '')},1")
    path.write_text("\n".join(lines) + "\n")


@pytest.fixture
def core_directory(tmp_path):
    # file names deliberately out of stratigraphic order
    write_section(tmp_path / 'c_top.csv', 10, {10: 'ML1'})
    write_section(tmp_path / 'a_middle.csv', 12, {1: 'ML1', 12: 'ML2'})
    write_section(tmp_path / 'b_bottom.csv', 6, {1: 'ML2'})
    return tmp_path


def test_reconstruct_with_top_hint(core_directory):
    loaded = load_section_directory(str(core_directory))
    result = reconstruct_sequence(loaded.sections, top='c_top.csv')

    assert result.ordered_names == ['c_top.csv', 'a_middle.csv', 'b_bottom.csv']
    assert result.order.polarity == POLARITY_HINT
    assert len(result.df) == 10 + 11 + 5
    assert result.df['global_index'].iloc[-1] == len(result.df)
    assert result.df['source_section'].iloc[-1] == 'b_bottom.csv'
    assert any('Boundary markers: ML1, ML2' in line for line in result.log)


def test_reconstruct_infers_polarity(core_directory):
    messages = []
    loaded = load_section_directory(str(core_directory))
    result = reconstruct_sequence(loaded.sections,
                                  progress_callback=lambda step, msg: messages.append((step, msg)))

    assert result.order.polarity == POLARITY_HEURISTIC
    assert result.ordered_names[0] == 'c_top.csv'
    assert messages[-1][0] == 'complete'


def test_reconstruct_aborts_without_partial_output(core_directory):
    write_section(core_directory / 'd_extra.csv', 4, {1: 'ML2'})
    loaded = load_section_directory(str(core_directory))

    with pytest.raises(ReconstructionError):
        reconstruct_sequence(loaded.sections, top='c_top.csv')


def test_discarded_label_is_ignored_end_to_end(tmp_path):
    write_section(tmp_path / 'c_top.csv', 10, {5: 'BAD', 10: 'ML1'})
    write_section(tmp_path / 'a_middle.csv', 12, {1: 'ML1', 12: 'ML2'})
    write_section(tmp_path / 'b_bottom.csv', 6, {1: 'ML2', 3: 'BAD'})
    loaded = load_section_directory(str(tmp_path))

    with pytest.raises(ReconstructionError):
        reconstruct_sequence(loaded.sections, top='c_top.csv')

    result = reconstruct_sequence(loaded.sections, top='c_top.csv', discarded_labels=['BAD'])

    assert result.ordered_names == ['c_top.csv', 'a_middle.csv', 'b_bottom.csv']
    assert result.combined.discarded_labels == ['BAD']
    assert len(result.df) == 10 + 11 + 5
