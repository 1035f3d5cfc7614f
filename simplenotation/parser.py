"""Measure, stave and score parsing for the template (jianpu) dialect."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any

from simplenotation.lyrics import split_lyric
from simplenotation.models import (
    MeasureModel,
    NoteDescriptor,
    ParsedScore,
    StaveModel,
    TemplateData,
)
from simplenotation.tokenizer import NoteTokenizer

DEFAULT_BEATS = 4.0
TRIPLET_WEIGHT_FACTOR = 0.7
TRIPLET_TIME_FACTOR = 2 / 3

# Beat sums are compared with a tolerance so 32nd-note arithmetic stays exact.
_EPSILON = 1e-9

_TRIPLET_RE = re.compile(r"3\(([^)]*)\)")
_METER_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*/\s*\d+\s*$")


def resolve_expected_beats(beat: str | None) -> float:
    """
    Turn the header "beat" field into the beat count every measure must fill.

    Accepts a plain number ("3"), a meter ("3/4"), or common/cut time ("C",
    "C|"). Anything else, including zero or negative numbers, gives 4.
    """
    text = (beat or "").strip()
    if text == "C":
        return 4.0
    if text == "C|":
        return 2.0
    meter = _METER_RE.match(text)
    if meter:
        text = meter.group(1)
    try:
        value = float(text)
    except ValueError:
        return DEFAULT_BEATS
    return value if value > 0 else DEFAULT_BEATS


def split_outside_angles(text: str) -> list[str]:
    """Split on commas that are not inside a ``<...>`` grace group."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch == "<":
            depth += 1
        elif ch == ">" and depth > 0:
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


@dataclass(frozen=True)
class MeasureToken:
    """A raw note token plus its position inside a triplet group, if any."""

    text: str
    is_triplet: bool = False
    group_start: bool = False
    group_end: bool = False


def split_measure_tokens(measure_data: str) -> list[MeasureToken]:
    """Split a measure into note tokens, expanding ``3(a,b,c)`` triplet groups."""
    tokens: list[MeasureToken] = []

    def plain(segment: str) -> None:
        for part in split_outside_angles(segment):
            if part.strip():
                tokens.append(MeasureToken(part.strip()))

    cursor = 0
    for match in _TRIPLET_RE.finditer(measure_data):
        plain(measure_data[cursor:match.start()])
        members = [m.strip() for m in match.group(1).split(",")]
        last = len(members) - 1
        for i, member in enumerate(members):
            if member:
                tokens.append(
                    MeasureToken(member, is_triplet=True, group_start=i == 0, group_end=i == last)
                )
        cursor = match.end()
    plain(measure_data[cursor:])
    return tokens


def split_repeat_marks(measure_data: str) -> tuple[str, bool, bool]:
    """Strip ``:`` repeat marks from a measure body.

    Returns:
        (body, repeat_start, repeat_end)
    """
    body = measure_data.strip()
    repeat_start = body.startswith(":")
    if repeat_start:
        body = body[1:].strip()
    repeat_end = body.endswith(":")
    if repeat_end:
        body = body[:-1].strip()
    return body, repeat_start, repeat_end


def _on_beat(total: float) -> bool:
    return abs(total - round(total)) < _EPSILON


class BaseParser(ABC):
    """
    Shared measure/stave/score pipeline for both dialects.

    Subclasses only decide how a document is split into header info and a
    score body; the body is always parsed with the template grammar.
    """

    def __init__(self, tokenizer: NoteTokenizer | None = None) -> None:
        self.tokenizer = tokenizer or NoteTokenizer()
        self._pending_repeat_start = False

    @abstractmethod
    def parse(self, data: Any) -> ParsedScore:
        """Parse one document into a ParsedScore."""

    def parse_note(self, note_data: str) -> NoteDescriptor:
        return self.tokenizer.tokenize(note_data)

    def parse_measure(
        self,
        measure_data: str,
        note_count: int,
        expected_beats: float,
    ) -> tuple[float, int, list[NoteDescriptor]]:
        """
        Parse one measure and validate its length against ``expected_beats``.

        Notes that push the running total past ``expected_beats`` are flagged
        ``is_error``. If nothing overflowed but the measure is short, every
        note in it is flagged.

        Args:
            measure_data:   Measure text without barlines.
            note_count:     Notes parsed so far in the document.
            expected_beats: Beats the measure must contain.

        Returns:
            (measure weight, updated note count, indexed notes)
        """
        tokens = split_measure_tokens(measure_data)
        weight = 0.0
        total_time = 0.0
        exceed = False
        notes: list[NoteDescriptor] = []

        for position, token in enumerate(tokens):
            parsed = self.parse_note(token.text)
            start_note = _on_beat(total_time)

            note_weight = parsed.weight
            node_time = parsed.node_time
            will_total = total_time
            if token.is_triplet:
                note_weight *= TRIPLET_WEIGHT_FACTOR
                node_time *= TRIPLET_TIME_FACTOR
                # The whole group counts once, as two of its notes.
                if token.group_start:
                    will_total += parsed.node_time * 2
            else:
                will_total += parsed.node_time

            overflow = will_total > expected_beats + _EPSILON
            if overflow:
                exceed = True
            total_time = will_total
            weight += note_weight

            notes.append(
                replace(
                    parsed,
                    index=note_count + position + 1,
                    node_time=node_time,
                    weight=note_weight,
                    start_note=start_note,
                    end_note=_on_beat(total_time),
                    is_error=overflow or parsed.is_error,
                    is_triplet=token.is_triplet,
                    triplet_group_start=token.group_start,
                    triplet_group_end=token.group_end,
                )
            )

        if not exceed and total_time < expected_beats - _EPSILON:
            notes = [replace(note, is_error=True) for note in notes]

        return weight, note_count + len(tokens), notes

    def parse_stave(
        self,
        stave: str,
        note_count: int,
        measure_count: int,
        expected_beats: float,
        stave_index: int = 0,
    ) -> tuple[StaveModel, int, int]:
        """
        Split a stave line on ``|`` and parse every non-empty measure.

        A ``:`` standing alone between barlines opens a repeat for the next
        measure (``|:|``), unless it is the last mark of the stave and is
        followed by a barline (``...|:|``), where it closes the repeat on the
        measure before it. ``::`` does both.

        Returns:
            (stave model, updated note count, updated measure count)
        """
        measures: list[MeasureModel] = []
        weight = 0.0
        parts = stave.strip().split("|")

        for position, raw in enumerate(parts):
            if not raw.strip():
                continue
            body, repeat_start, repeat_end = split_repeat_marks(raw)

            if not body:
                following = parts[position + 1:]
                if raw.strip() == ":" and following and not any(p.strip() for p in following):
                    repeat_start, repeat_end = False, True
                repeat_start = repeat_start or self._pending_repeat_start
                if repeat_end and measures:
                    measures[-1] = replace(measures[-1], repeat_end=True)
                self._pending_repeat_start = repeat_start
                continue
            repeat_start = repeat_start or self._pending_repeat_start
            self._pending_repeat_start = False

            measure_weight, note_count, notes = self.parse_measure(body, note_count, expected_beats)
            weight += measure_weight
            measures.append(
                MeasureModel(
                    index=measure_count,
                    measure_data=body,
                    weight=measure_weight,
                    note_options=notes,
                    repeat_start=repeat_start,
                    repeat_end=repeat_end,
                )
            )
            measure_count += 1

        stave_model = StaveModel(index=stave_index, weight=weight, measure_options=measures)
        return stave_model, note_count, measure_count

    def parse_score(self, score_data: str, expected_beats: float = DEFAULT_BEATS) -> list[StaveModel]:
        """Split the score body on newlines and parse each non-blank stave."""
        self._pending_repeat_start = False
        note_count = 0
        measure_count = 0
        staves: list[StaveModel] = []
        for line in score_data.split("\n"):
            if not line.strip():
                continue
            stave, note_count, measure_count = self.parse_stave(
                line, note_count, measure_count, expected_beats, len(staves)
            )
            staves.append(stave)
        return staves


class TemplateParser(BaseParser):
    """Parser for template data: explicit header info plus a jianpu body."""

    def parse(self, data: TemplateData) -> ParsedScore:
        expected_beats = resolve_expected_beats(data.info.beat)
        lyric = (data.lyric or "").replace("\n", "")
        return ParsedScore(
            info=data.info,
            score=data.score,
            staves=self.parse_score(data.score, expected_beats),
            expected_beats=expected_beats,
            lyric=lyric,
            lyrics=split_lyric(lyric) if lyric else [],
        )
