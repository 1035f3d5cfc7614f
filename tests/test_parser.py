"""Unit tests for measure, stave and score parsing of the template dialect."""

import pytest

from simplenotation.models import ScoreInfo, TemplateData
from simplenotation.parser import (
    TemplateParser,
    resolve_expected_beats,
    split_measure_tokens,
    split_outside_angles,
    split_repeat_marks,
)


@pytest.fixture
def parser() -> TemplateParser:
    return TemplateParser()


# ── measures ────────────────────────────────────────────────────────────────

def test_full_measure_has_no_errors(parser: TemplateParser) -> None:
    weight, count, notes = parser.parse_measure("1,1,5,5", 0, 4)
    assert [n.node_time for n in notes] == [1, 1, 1, 1]
    assert sum(n.node_time for n in notes) == 4
    assert not any(n.is_error for n in notes)
    assert count == 4
    assert weight == pytest.approx(40.0)


def test_short_measure_flags_every_note(parser: TemplateParser) -> None:
    _, _, notes = parser.parse_measure("1,2", 0, 4)
    assert [n.node_time for n in notes] == [1, 1]
    assert all(n.is_error for n in notes)


def test_overflow_flags_only_overflowing_notes(parser: TemplateParser) -> None:
    _, _, notes = parser.parse_measure("1,1,5,5,6,7", 0, 4)
    assert [n.is_error for n in notes] == [False, False, False, False, True, True]


def test_eighths_fill_the_measure(parser: TemplateParser) -> None:
    _, _, notes = parser.parse_measure("1/8,2/8,3,4,5/16,6/16,7/8", 0, 4)
    assert not any(n.is_error for n in notes)


def test_note_indexes_continue_from_count(parser: TemplateParser) -> None:
    _, count, notes = parser.parse_measure("1,2,3,4", 10, 4)
    assert [n.index for n in notes] == [11, 12, 13, 14]
    assert count == 14


def test_grace_commas_do_not_split_tokens(parser: TemplateParser) -> None:
    _, _, notes = parser.parse_measure("<1,2>3,4,5,6", 0, 4)
    assert len(notes) == 4
    assert [g.note for g in notes[0].grace_notes] == ["1", "2"]


def test_beat_boundary_flags(parser: TemplateParser) -> None:
    _, _, notes = parser.parse_measure("1/8,2/8,3,4,5", 0, 4)
    assert notes[0].start_note and not notes[0].end_note
    assert not notes[1].start_note and notes[1].end_note
    assert notes[2].start_note and notes[2].end_note


def test_triplet_group(parser: TemplateParser) -> None:
    _, _, notes = parser.parse_measure("3(1/8,2/8,3/8),4,5,6", 0, 4)
    assert not any(n.is_error for n in notes)
    triplet = notes[:3]
    assert all(n.is_triplet for n in triplet)
    assert triplet[0].triplet_group_start and not triplet[0].triplet_group_end
    assert triplet[2].triplet_group_end
    assert triplet[0].node_time == pytest.approx(1 / 3)
    assert triplet[0].weight == pytest.approx(8.0 * 0.7)
    assert not notes[3].is_triplet


def test_measure_with_unparsable_token_is_short(parser: TemplateParser) -> None:
    _, _, notes = parser.parse_measure("1,2,3,x", 0, 4)
    assert notes[3].node_time == 0
    assert all(n.is_error for n in notes)


# ── staves ──────────────────────────────────────────────────────────────────

def test_stave_splits_on_barlines(parser: TemplateParser) -> None:
    stave, note_count, measure_count = parser.parse_stave("1,2,3,4|5,6,7,1|", 0, 0, 4)
    assert [m.index for m in stave.measure_options] == [0, 1]
    assert [m.measure_data for m in stave.measure_options] == ["1,2,3,4", "5,6,7,1"]
    assert note_count == 8
    assert measure_count == 2
    assert stave.weight == pytest.approx(80.0)


def test_repeat_barlines(parser: TemplateParser) -> None:
    stave, _, _ = parser.parse_stave("|: 1,2,3,4 | 5,6,7,1 :|", 0, 0, 4)
    first, second = stave.measure_options
    assert first.repeat_start and not first.repeat_end
    assert second.repeat_end and not second.repeat_start
    assert first.measure_data == "1,2,3,4"


def test_bare_repeat_start_moves_to_next_measure(parser: TemplateParser) -> None:
    stave, _, _ = parser.parse_stave("1,2,3,4|:|5,6,7,1", 0, 0, 4)
    assert len(stave.measure_options) == 2
    assert stave.measure_options[1].repeat_start


def test_trailing_bare_colon_closes_repeat(parser: TemplateParser) -> None:
    staves = parser.parse_score("1,2,3,4|:|\n5,6,7,1", 4)
    first = staves[0].measure_options[0]
    assert first.repeat_end and not first.repeat_start
    assert not staves[1].measure_options[0].repeat_start


def test_bare_colon_at_line_end_opens_next_stave(parser: TemplateParser) -> None:
    staves = parser.parse_score("1,2,3,4|:\n5,6,7,1", 4)
    assert not staves[0].measure_options[0].repeat_end
    assert staves[1].measure_options[0].repeat_start


# ── score ───────────────────────────────────────────────────────────────────

def test_score_counters_run_across_staves(parser: TemplateParser) -> None:
    staves = parser.parse_score("1,2,3,4|5,6,7,1\n\n1,1,5,5", 4)
    assert [s.index for s in staves] == [0, 1]
    assert staves[1].measure_options[0].index == 2
    assert staves[1].measure_options[0].note_options[0].index == 9


def test_template_parse(parser: TemplateParser) -> None:
    data = TemplateData(
        info=ScoreInfo(title="Waltz", beat="3/4", tempo="90"),
        score="1,2,3|{C}4,5,6",
        lyric="一闪\n一闪",
    )
    parsed = parser.parse(data)
    assert parsed.expected_beats == 3
    assert parsed.info.title == "Waltz"
    assert parsed.lyric == "一闪一闪"
    assert parsed.lyrics == ["一", "闪", "一", "闪"]
    assert parsed.suggests_chord_row
    assert not any(
        n.is_error for m in parsed.staves[0].measure_options for n in m.note_options
    )


def test_flatten_carries_measure_flags(parser: TemplateParser) -> None:
    parsed = parser.parse(TemplateData(info=ScoreInfo(beat="2"), score="1,2|:3,4:|"))
    flat = parsed.flatten()
    assert [n.measure_index for n in flat] == [0, 0, 1, 1]
    assert [n.repeat_start for n in flat] == [False, False, True, True]
    assert [n.repeat_end for n in flat] == [False, False, True, True]


def test_parsing_is_deterministic(parser: TemplateParser) -> None:
    data = TemplateData(info=ScoreInfo(), score="{C}1,<2>3,[5,5]|3(1/8,2/8,3/8),-,-,0")
    assert parser.parse(data).to_dict() == TemplateParser().parse(data).to_dict()


# ── helpers ─────────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "beat, expected",
    [
        ("3", 3.0),
        ("3/4", 3.0),
        ("6/8", 6.0),
        ("C", 4.0),
        ("C|", 2.0),
        ("", 4.0),
        ("0", 4.0),
        ("-2", 4.0),
        ("waltz", 4.0),
        (None, 4.0),
    ],
)
def test_resolve_expected_beats(beat: str | None, expected: float) -> None:
    assert resolve_expected_beats(beat) == expected


def test_split_outside_angles() -> None:
    assert split_outside_angles("<1,2>3,4") == ["<1,2>3", "4"]


def test_split_measure_tokens_drops_empty_tokens() -> None:
    assert [t.text for t in split_measure_tokens("1,,2, ")] == ["1", "2"]


def test_split_repeat_marks() -> None:
    assert split_repeat_marks(": 1,2 :") == ("1,2", True, True)
    assert split_repeat_marks("1,2") == ("1,2", False, False)
