"""Unit tests for MidiExporter."""

from pathlib import Path

import pytest

from simplenotation.errors import PlaybackError
from simplenotation.midi_exporter import MidiExporter, meter_denominator
from simplenotation.models import ParsedScore
from simplenotation.runtime import load


def _score(score: str, beat: str = "4", tempo: str = "120", key: str = "C") -> ParsedScore:
    return load({"info": {"beat": beat, "tempo": tempo, "key": key}, "score": score})


def test_collect_melody_in_beats() -> None:
    melody, chords = MidiExporter().collect(_score("1,2,3,4"))
    assert [e.start for e in melody] == [0, 1, 2, 3]
    assert [e.duration for e in melody] == [1, 1, 1, 1]
    assert [e.pitches for e in melody] == [[60], [62], [64], [65]]
    assert chords == []


def test_rests_and_holds_are_skipped() -> None:
    melody, _ = MidiExporter().collect(_score("1,0,-,2"))
    assert [(e.start, e.duration, e.pitches) for e in melody] == [
        (0, 1, [60]),
        (3, 1, [62]),
    ]


def test_ties_become_one_long_note() -> None:
    melody, _ = MidiExporter().collect(_score("[5,5],-,1"))
    assert [(e.start, e.duration) for e in melody] == [(0, 3), (3, 1)]


def test_repeats_are_unrolled() -> None:
    melody, _ = MidiExporter().collect(_score("|:1,2:|", beat="2"))
    assert [e.start for e in melody] == [0, 1, 2, 3]
    assert [e.pitches[0] for e in melody] == [60, 62, 60, 62]


def test_endless_repeat_raises_playback_error() -> None:
    with pytest.raises(PlaybackError, match="repeat marks"):
        MidiExporter(max_steps=50).collect(_score("1,2:|3,4:|", beat="2"))


def test_key_transposes_melody() -> None:
    melody, _ = MidiExporter().collect(_score("1,2,3,4", key="G"))
    assert [e.pitches[0] for e in melody] == [67, 69, 71, 72]


def test_chord_events() -> None:
    _, chords = MidiExporter().collect(_score("{1}1,2,{5 1.}5,-"))
    assert [(e.start, e.duration) for e in chords] == [(0, 1), (2, 1)]
    assert chords[0].pitches == [48, 52, 55]
    assert chords[1].pitches == [55, 59, 62]


@pytest.mark.parametrize("beat, expected", [("3/4", 4), ("6/8", 8), ("2/2", 2), ("3/5", 4), ("", 4), ("C", 4)])
def test_meter_denominator(beat: str, expected: int) -> None:
    assert meter_denominator(beat) == expected


def test_export_writes_standard_midi_file(tmp_path: Path) -> None:
    output = tmp_path / "song.mid"
    MidiExporter().export(_score("{C}1,2,3,4|5,-,-,0", beat="4/4"), str(output))
    data = output.read_bytes()
    assert data.startswith(b"MThd")
    assert b"MTrk" in data


def test_export_to_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        MidiExporter().export(_score("1,2,3,4"), str(tmp_path / "missing" / "song.mid"))
