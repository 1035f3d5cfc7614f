"""Unit tests for NoteTokenizer and its grammar helpers."""

import pytest

from simplenotation.tokenizer import (
    BASE_WEIGHT,
    NoteTokenizer,
    extract_chords,
    extract_grace_group,
    match_core,
)


@pytest.fixture
def tokenizer() -> NoteTokenizer:
    return NoteTokenizer()


def test_dotted_eighth(tokenizer: NoteTokenizer) -> None:
    note = tokenizer.tokenize("5/8.")
    assert note.node_time == pytest.approx(0.75)
    assert note.underline_count == 1
    assert note.duration == 8
    assert note.note == "5."
    assert note.weight == pytest.approx(BASE_WEIGHT * 0.8)


def test_plain_quarter(tokenizer: NoteTokenizer) -> None:
    note = tokenizer.tokenize("3")
    assert note.note == "3"
    assert note.node_time == 1
    assert note.underline_count == 0
    assert note.weight == BASE_WEIGHT
    assert note.note_data == "3"


@pytest.mark.parametrize(
    "token, node_time, underlines",
    [
        ("1/2", 2.0, 0),
        ("1/4", 1.0, 0),
        ("1/8", 0.5, 1),
        ("1/16", 0.25, 2),
        ("1/32", 0.125, 3),
    ],
)
def test_duration_suffixes(tokenizer: NoteTokenizer, token: str, node_time: float, underlines: int) -> None:
    note = tokenizer.tokenize(token)
    assert note.node_time == pytest.approx(node_time)
    assert note.underline_count == underlines


def test_sharp_and_octave_up(tokenizer: NoteTokenizer) -> None:
    note = tokenizer.tokenize("#4^")
    assert note.up_down_count == 1
    assert note.octave_count == 1


def test_flat_and_octave_down(tokenizer: NoteTokenizer) -> None:
    note = tokenizer.tokenize("bb7__")
    assert note.up_down_count == -2
    assert note.octave_count == -2


def test_rest_counts_are_zeroed(tokenizer: NoteTokenizer) -> None:
    note = tokenizer.tokenize("#0^")
    assert note.note == "0"
    assert note.up_down_count == 0
    assert note.octave_count == 0
    assert note.node_time == 1


def test_continuation_token(tokenizer: NoteTokenizer) -> None:
    note = tokenizer.tokenize("-")
    assert note.note == "-"
    assert note.node_time == 1


def test_parenthesised_note_keeps_brackets(tokenizer: NoteTokenizer) -> None:
    assert tokenizer.tokenize("(5)").note == "(5)"


def test_grace_group(tokenizer: NoteTokenizer) -> None:
    note = tokenizer.tokenize("<1,2>3")
    assert note.note == "3"
    assert [g.note for g in note.grace_notes] == ["1", "2"]
    assert all(g.node_time == 1 for g in note.grace_notes)


def test_chord_symbols(tokenizer: NoteTokenizer) -> None:
    note = tokenizer.tokenize("{C Am}1")
    assert note.chord == ["C", "Am"]
    assert note.suggests_chord_row
    assert note.note == "1"


def test_no_chord_no_chord_row(tokenizer: NoteTokenizer) -> None:
    assert not tokenizer.tokenize("1").suggests_chord_row


def test_section_marker_is_a_chord_symbol(tokenizer: NoteTokenizer) -> None:
    assert tokenizer.tokenize("{1.}5").chord == ["1."]


def test_section_marker_shares_block_with_chord(tokenizer: NoteTokenizer) -> None:
    assert tokenizer.tokenize("{G 1.}5").chord == ["G", "1."]


def test_tie_brackets(tokenizer: NoteTokenizer) -> None:
    start = tokenizer.tokenize("[5")
    end = tokenizer.tokenize("5]")
    assert start.is_tie_start and not start.is_tie_end
    assert end.is_tie_end and not end.is_tie_start
    assert start.same_pitch(end)


def test_everything_combined(tokenizer: NoteTokenizer) -> None:
    note = tokenizer.tokenize("{G}<5>[#4/8^")
    assert note.chord == ["G"]
    assert [g.note for g in note.grace_notes] == ["5"]
    assert note.is_tie_start
    assert note.up_down_count == 1
    assert note.octave_count == 1
    assert note.node_time == pytest.approx(0.5)


def test_unparsable_token_degrades(tokenizer: NoteTokenizer) -> None:
    note = tokenizer.tokenize("{F}xyz")
    assert note.node_time == 0
    assert note.note == "{F}xyz"
    assert note.up_down_count == 0
    assert note.octave_count == 0
    assert note.chord == ["F"]


def test_tokenize_never_raises_on_empty(tokenizer: NoteTokenizer) -> None:
    assert tokenizer.tokenize("").node_time == 0


def test_match_core_is_leftmost() -> None:
    core = match_core("?#2/16_")
    assert core is not None
    assert core.accidental == "#"
    assert core.degree == "2"
    assert core.duration == "16"
    assert core.octave == "_"


def test_match_core_none() -> None:
    assert match_core("abc") is None


def test_extract_chords_collects_every_block() -> None:
    chords, rest = extract_chords("{C}{G7 Am}1")
    assert chords == ["C", "G7", "Am"]
    assert rest == "1"


def test_extract_grace_group_keeps_first_group_only() -> None:
    tokens, rest = extract_grace_group("<1,2>3<4>")
    assert tokens == ["1", "2"]
    assert rest == "3"
