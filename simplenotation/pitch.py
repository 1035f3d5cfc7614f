"""Pitch mapping: jianpu degrees and chord symbols to MIDI note numbers."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from music21 import key as m21key

    from simplenotation.models import NoteDescriptor

logger = logging.getLogger(__name__)

# ── MIDI constants ──────────────────────────────────────────────────────────
SEMITONES_PER_OCTAVE = 12
MIDDLE_C_MIDI = 60  # C4, the octave of degree 1 with no octave marks
CHORD_OCTAVE_SHIFT = -SEMITONES_PER_OCTAVE  # chords sit an octave under the melody

#: Semitone offset of each major-scale degree (1-7) from the tonic
MAJOR_SCALE: tuple[int, ...] = (0, 2, 4, 5, 7, 9, 11)

#: Numbered-chord quality suffix -> intervals above the root
CHORD_QUALITIES: dict[str, tuple[int, ...]] = {
    "": (0, 4, 7),
    "m": (0, 3, 7),
    "7": (0, 4, 7, 10),
    "maj7": (0, 4, 7, 11),
    "m7": (0, 3, 7, 10),
    "dim": (0, 3, 6),
    "aug": (0, 4, 8),
    "sus2": (0, 2, 7),
    "sus4": (0, 5, 7),
}

_KEY_RE = re.compile(r"^(?:1\s*=\s*)?([A-Ga-g])([#b]?)(m|min|minor)?$")
_SECTION_MARKER_RE = re.compile(r"^\d+\.$")
_NUMBERED_CHORD_RE = re.compile(r"^([#b]?)([1-7])(.*)$")
_LETTER_CHORD_RE = re.compile(r"^([A-G])([#b]?)(.*)$")
_DEGREE_RE = re.compile(r"[1-7]")


def key_from_text(text: str | None) -> m21key.Key:
    """
    Parse a score's key field into a major music21 Key.

    Accepts ``C``, ``G``, ``Bb``, ``F#``, ``Am`` and the jianpu form ``1=D``.
    Minor keys resolve to their relative major, since jianpu writes minor
    tunes la-based. Anything unrecognised falls back to C major.
    """
    from music21 import key as m21key

    match = _KEY_RE.match((text or "").strip())
    if match is None:
        if text:
            logger.debug("Unrecognised key %r, using C major", text)
        return m21key.Key("C")

    letter, accidental, minor = match.groups()
    tonic = letter.upper() + accidental.replace("b", "-")
    if minor:
        return m21key.Key(tonic.lower()).relative
    return m21key.Key(tonic)


def degree_to_midi(
    degree: int,
    up_down_count: int = 0,
    octave_count: int = 0,
    key: m21key.Key | None = None,
) -> int | None:
    """
    Return the MIDI number of a scale degree.

    Args:
        degree:        1-7; anything else (rests, holds) yields None.
        up_down_count: Sharps minus flats.
        octave_count:  Octaves above (positive) or below the tonic's octave.
        key:           Major key; C major when omitted.
    """
    if not 1 <= degree <= len(MAJOR_SCALE):
        return None
    tonic_class = key.tonic.pitchClass if key is not None else 0
    return (
        MIDDLE_C_MIDI
        + tonic_class
        + MAJOR_SCALE[degree - 1]
        + up_down_count
        + octave_count * SEMITONES_PER_OCTAVE
    )


def note_to_midi(note: NoteDescriptor, key: m21key.Key | None = None) -> int | None:
    """MIDI number of a parsed note, or None for rests, holds and unparsed tokens."""
    if note.node_time == 0:
        return None
    match = _DEGREE_RE.search(note.note)
    if match is None:
        return None
    return degree_to_midi(int(match.group()), note.up_down_count, note.octave_count, key)


def _numbered_chord(symbol: str, key: m21key.Key | None) -> list[int]:
    match = _NUMBERED_CHORD_RE.match(symbol)
    if match is None:
        return []
    accidental, degree, quality = match.groups()
    intervals = CHORD_QUALITIES.get(quality)
    if intervals is None:
        return []
    up_down = {"#": 1, "b": -1}.get(accidental, 0)
    root = degree_to_midi(int(degree), up_down, 0, key)
    if root is None:
        return []
    return [root + CHORD_OCTAVE_SHIFT + interval for interval in intervals]


def _letter_chord(symbol: str) -> list[int]:
    from music21 import harmony
    from music21.exceptions21 import Music21Exception

    match = _LETTER_CHORD_RE.match(symbol)
    if match is None:
        return []
    letter, accidental, rest = match.groups()
    figure = letter + accidental.replace("b", "-") + rest
    try:
        chord_symbol = harmony.ChordSymbol(figure)
    except (Music21Exception, ValueError) as exc:
        logger.debug("Cannot resolve chord %r: %s", symbol, exc)
        return []
    return [p.midi for p in chord_symbol.pitches]


def chord_to_midi(symbol: str, key: m21key.Key | None = None) -> list[int]:
    """
    Resolve one chord-row symbol into MIDI note numbers.

    Letter chords (``C``, ``Am``, ``Bb7``) go through music21's ChordSymbol.
    Numbered chords (``1``, ``6m``, ``5maj7``, ``2m7``, ``57``) are built on
    the key's scale degrees an octave below the melody. Section markers
    (``1.``) and other annotations resolve to an empty list.
    """
    text = symbol.strip()
    if not text or _SECTION_MARKER_RE.match(text):
        return []
    if text[0].isdigit() or (text[0] in "#b" and len(text) > 1 and text[1].isdigit()):
        return _numbered_chord(text, key)
    return _letter_chord(text)
