"""Data models produced by the notation parsers and consumed by the player."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any


@dataclass(frozen=True)
class NoteDescriptor:
    """
    One parsed note, rest or continuation token.

    Attributes:
        note:            Reconstructed note text: optional ``(``, the degree
                         (``0``-``9`` or ``-``), optional dot, optional ``)``.
                         Holds the raw token when the token could not be parsed.
        node_time:       Length in beats (1 = one plain note, 0.5 = ``/8``).
        weight:          Relative horizontal layout weight.
        up_down_count:   Sharps minus flats.
        octave_count:    ``^`` marks minus ``_`` marks.
        underline_count: 0-3 beam underlines (none, 8th, 16th, 32nd).
        duration:        Note value denominator (2, 4, 8, 16, 32).
    """

    note: str = ""
    node_time: float = 0.0
    weight: float = 10.0
    up_down_count: int = 0
    octave_count: int = 0
    underline_count: int = 0
    duration: int = 4
    is_tie_start: bool = False
    is_tie_end: bool = False
    grace_notes: list[NoteDescriptor] = field(default_factory=list)
    chord: list[str] = field(default_factory=list)
    is_error: bool = False
    note_data: str = ""
    index: int = 0
    start_note: bool = False
    end_note: bool = False
    is_triplet: bool = False
    triplet_group_start: bool = False
    triplet_group_end: bool = False

    @property
    def suggests_chord_row(self) -> bool:
        """True when the note carries chord symbols that need a chord row."""
        return bool(self.chord)

    def same_pitch(self, other: NoteDescriptor) -> bool:
        """Pitch equality used by tie runs: note text, accidentals and octave."""
        return (
            self.note == other.note
            and self.up_down_count == other.up_down_count
            and self.octave_count == other.octave_count
        )

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["grace_notes"] = [g.to_dict() for g in self.grace_notes]
        data["chord"] = list(self.chord)
        return data


@dataclass(frozen=True)
class MeasureModel:
    """A bar of notes plus the repeat flags taken from its barlines."""

    index: int
    measure_data: str
    weight: float
    note_options: list[NoteDescriptor]
    repeat_start: bool = False
    repeat_end: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "measure_data": self.measure_data,
            "weight": self.weight,
            "repeat_start": self.repeat_start,
            "repeat_end": self.repeat_end,
            "note_options": [n.to_dict() for n in self.note_options],
        }


@dataclass(frozen=True)
class StaveModel:
    """One line (system) of the score."""

    index: int
    weight: float
    measure_options: list[MeasureModel]

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "weight": self.weight,
            "measure_options": [m.to_dict() for m in self.measure_options],
        }


@dataclass(frozen=True)
class FlattenedNote(NoteDescriptor):
    """A note annotated with its owning measure, the player's unit of iteration."""

    measure_index: int = 0
    repeat_start: bool = False
    repeat_end: bool = False

    @classmethod
    def from_note(cls, note: NoteDescriptor, measure: MeasureModel) -> FlattenedNote:
        values = {f.name: getattr(note, f.name) for f in fields(NoteDescriptor)}
        return cls(
            **values,
            measure_index=measure.index,
            repeat_start=measure.repeat_start,
            repeat_end=measure.repeat_end,
        )


@dataclass
class ScoreInfo:
    """Header information. Every field is kept as text, empty when absent."""

    title: str = ""
    composer: str = ""
    lyricist: str = ""
    beat: str = ""
    time: str = ""
    key: str = ""
    tempo: str = ""
    lyric: str = ""

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> ScoreInfo:
        data = data or {}
        known = {f.name for f in fields(cls)}
        return cls(**{k: str(v) for k, v in data.items() if k in known and v is not None})


@dataclass
class TemplateData:
    """Input of the template dialect: header info, score body and lyric."""

    info: ScoreInfo
    score: str
    lyric: str = ""


@dataclass(frozen=True)
class ParsedScore:
    """Result of parsing one document in either dialect."""

    info: ScoreInfo
    score: str
    staves: list[StaveModel]
    expected_beats: float = 4
    lyric: str = ""
    lyrics: list[str] = field(default_factory=list)

    @property
    def suggests_chord_row(self) -> bool:
        return any(
            note.suggests_chord_row
            for stave in self.staves
            for measure in stave.measure_options
            for note in measure.note_options
        )

    def flatten(self) -> list[FlattenedNote]:
        """Concatenate every stave's every measure's notes in document order."""
        return [
            FlattenedNote.from_note(note, measure)
            for stave in self.staves
            for measure in stave.measure_options
            for note in measure.note_options
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "info": {f.name: getattr(self.info, f.name) for f in fields(self.info)},
            "score": self.score,
            "expected_beats": self.expected_beats,
            "lyric": self.lyric,
            "lyrics": list(self.lyrics),
            "staves": [s.to_dict() for s in self.staves],
        }
