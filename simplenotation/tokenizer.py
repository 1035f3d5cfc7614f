r"""NoteTokenizer: turns one template-dialect note token into a NoteDescriptor.

Token grammar, applied in this order (each step strips what it consumed)::

    token := chord* grace? "["? core "]"?
    chord := "{" [^}]+ "}"
    grace := "<" core ("," core)* ">"
    core  := "("? [#b]* (digit | "-") ("/" (2|4|8|16|32))? "."? [\^_]* ")"?

The core is searched leftmost in what remains of the token; anything before
or after the match is ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from simplenotation.models import NoteDescriptor

logger = logging.getLogger(__name__)

BASE_WEIGHT = 10.0

#: duration suffix -> (beats, underline count, weight factor, note value)
DURATION_TABLE: dict[str, tuple[float, int, float, int]] = {
    "2": (2.0, 0, 1.0, 2),
    "4": (1.0, 0, 1.0, 4),
    "8": (0.5, 1, 0.8, 8),
    "16": (0.25, 2, 0.7, 16),
    "32": (0.125, 3, 0.6, 32),
}

# Longest suffixes first so "/16" is not read as "/1" + "6".
_DURATION_SUFFIXES = ("16", "32", "2", "4", "8")

DOT_FACTOR = 1.5
SILENT_DEGREES = ("0", "-")


@dataclass(frozen=True)
class CoreMatch:
    """Named fields of one core-grammar match."""

    left_bracket: str
    accidental: str
    degree: str
    duration: str
    dot: str
    octave: str
    right_bracket: str


def match_core(text: str) -> CoreMatch | None:
    """Return the leftmost core-grammar match in ``text``, or None."""
    for start in range(len(text)):
        found = _match_core_at(text, start)
        if found is not None:
            return found
    return None


def _match_core_at(text: str, pos: int) -> CoreMatch | None:
    end = len(text)

    left_bracket = ""
    if pos < end and text[pos] == "(":
        left_bracket = "("
        pos += 1

    acc_start = pos
    while pos < end and text[pos] in "#b":
        pos += 1
    accidental = text[acc_start:pos]

    if pos >= end or not (text[pos] == "-" or text[pos] in "0123456789"):
        return None
    degree = text[pos]
    pos += 1

    duration = ""
    if text.startswith("/", pos):
        for suffix in _DURATION_SUFFIXES:
            if text.startswith(suffix, pos + 1):
                duration = suffix
                pos += 1 + len(suffix)
                break

    dot = ""
    if pos < end and text[pos] == ".":
        dot = "."
        pos += 1

    oct_start = pos
    while pos < end and text[pos] in "^_":
        pos += 1
    octave = text[oct_start:pos]

    right_bracket = ""
    if pos < end and text[pos] == ")":
        right_bracket = ")"

    return CoreMatch(left_bracket, accidental, degree, duration, dot, octave, right_bracket)


def extract_chords(text: str) -> tuple[list[str], str]:
    """Pull every ``{...}`` block out of ``text``.

    Returns:
        (chord symbols, text with the blocks removed). An unterminated or
        empty block is left in the text untouched.
    """
    chords: list[str] = []
    rest: list[str] = []
    pos = 0
    while pos < len(text):
        if text[pos] == "{":
            close = text.find("}", pos + 1)
            if close > pos + 1:
                chords.extend(text[pos + 1:close].split())
                pos = close + 1
                continue
        rest.append(text[pos])
        pos += 1
    return chords, "".join(rest)


def extract_grace_group(text: str) -> tuple[list[str], str]:
    """Pull the first ``<...>`` group out of ``text`` and drop any others.

    Returns:
        (comma-separated grace tokens of the first group, remaining text).
    """
    tokens: list[str] = []
    rest: list[str] = []
    found = False
    pos = 0
    while pos < len(text):
        if text[pos] == "<":
            close = text.find(">", pos + 1)
            if close > pos + 1:
                if not found:
                    tokens = text[pos + 1:close].split(",")
                    found = True
                pos = close + 1
                continue
        rest.append(text[pos])
        pos += 1
    return tokens, "".join(rest)


class NoteTokenizer:
    """
    Parse a single comma-delimited note token.

    Tokenizing never raises: a token whose core cannot be matched comes back
    with ``node_time == 0``, the raw token as ``note`` and zeroed counts.
    """

    def tokenize(self, note_data: str) -> NoteDescriptor:
        return self._tokenize(note_data, allow_grace=True)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _tokenize(self, note_data: str, allow_grace: bool) -> NoteDescriptor:
        text = note_data

        chord, text = extract_chords(text)

        grace_tokens, text = extract_grace_group(text)
        grace_notes: list[NoteDescriptor] = []
        if allow_grace:
            grace_notes = [self._tokenize(token, allow_grace=False) for token in grace_tokens]

        is_tie_start = text.startswith("[")
        if is_tie_start:
            text = text[1:]
        is_tie_end = text.endswith("]")
        if is_tie_end:
            text = text[:-1]

        core = match_core(text)
        if core is None:
            logger.debug("Unrecognised note token %r", note_data)
            return NoteDescriptor(
                note=note_data,
                node_time=0.0,
                weight=BASE_WEIGHT,
                is_tie_start=is_tie_start,
                is_tie_end=is_tie_end,
                grace_notes=grace_notes,
                chord=chord,
                note_data=note_data,
            )

        node_time, underline_count, weight_factor, duration = DURATION_TABLE[core.duration or "4"]
        if core.dot:
            node_time *= DOT_FACTOR

        up_down_count = core.accidental.count("#") - core.accidental.count("b")
        octave_count = core.octave.count("^") - core.octave.count("_")
        if core.degree in SILENT_DEGREES:
            up_down_count = 0
            octave_count = 0

        return NoteDescriptor(
            note=core.left_bracket + core.degree + core.dot + core.right_bracket,
            node_time=node_time,
            weight=BASE_WEIGHT * weight_factor,
            up_down_count=up_down_count,
            octave_count=octave_count,
            underline_count=underline_count,
            duration=duration,
            is_tie_start=is_tie_start,
            is_tie_end=is_tie_end,
            grace_notes=grace_notes,
            chord=chord,
            note_data=note_data,
        )
