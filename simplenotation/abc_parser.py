"""AbcParser: reads ABC-style header lines and parses the body as template notation."""

from __future__ import annotations

import logging
import re

from simplenotation.lyrics import split_lyric
from simplenotation.models import ParsedScore, ScoreInfo
from simplenotation.parser import BaseParser, resolve_expected_beats

logger = logging.getLogger(__name__)

_HEADER_RE = re.compile(r"^([A-Za-z]):(.*)$")
_TEMPO_RE = re.compile(r"^(\d+)\s*/\s*(\d+)\s*=\s*(\d+)$")
_METER_DENOMINATOR_RE = re.compile(r"/\s*(\d+)\s*$")

#: header letter -> ScoreInfo attribute
HEADER_FIELDS: dict[str, str] = {
    "T": "title",
    "C": "composer",
    "M": "beat",
    "L": "time",
    "K": "key",
    "Q": "tempo",
}
LYRIC_FIELDS = ("w", "W")


def normalize_tempo(value: str, meter: str = "") -> str:
    """
    Convert an ABC ``Q:`` value into beats per minute.

    ``1/4=120`` in 4/4 becomes ``"120"``; ``3/8=60`` in 6/8 becomes ``"180"``
    (a beat being one note of the meter denominator). Plain numbers and
    unrecognised forms are returned stripped and otherwise unchanged.
    """
    text = value.strip()
    match = _TEMPO_RE.match(text)
    if not match:
        return text
    numerator, denominator, bpm = (int(g) for g in match.groups())
    if denominator == 0:
        return text
    meter_match = _METER_DENOMINATOR_RE.search(meter)
    beat_unit = int(meter_match.group(1)) if meter_match else 4
    beats_per_minute = bpm * numerator * beat_unit / denominator
    return str(round(beats_per_minute))


class AbcParser(BaseParser):
    """
    Parse ABC-header documents.

    Recognised headers fill ScoreInfo (``T:`` title, ``C:`` composer,
    ``M:`` beat, ``L:`` time, ``K:`` key, ``Q:`` tempo). ``w:`` lines are
    collected as the lyric; any other ``X:`` line is ignored. Every other
    non-empty, non-comment line is body text, joined with newlines and
    parsed with the template grammar.
    """

    def parse(self, data: str) -> ParsedScore:
        info, body = self.parse_header(data)
        expected_beats = resolve_expected_beats(info.beat)
        return ParsedScore(
            info=info,
            score=body,
            staves=self.parse_score(body, expected_beats),
            expected_beats=expected_beats,
            lyric=info.lyric,
            lyrics=split_lyric(info.lyric) if info.lyric else [],
        )

    def parse_header(self, data: str) -> tuple[ScoreInfo, str]:
        """Separate header fields from body lines.

        Returns:
            (info record, newline-joined body text)
        """
        info = ScoreInfo()
        body_lines: list[str] = []
        lyric_lines: list[str] = []
        raw_tempo = ""

        for line in data.splitlines():
            trimmed = line.strip()
            if not trimmed or trimmed.startswith("%"):
                continue

            header = _HEADER_RE.match(trimmed)
            if header is None:
                body_lines.append(trimmed)
                continue

            letter, value = header.group(1), header.group(2).strip()
            if letter in LYRIC_FIELDS:
                lyric_lines.append(value)
            elif letter == "Q":
                raw_tempo = value
            elif letter in HEADER_FIELDS:
                setattr(info, HEADER_FIELDS[letter], value)
            else:
                logger.debug("Ignoring ABC header %s:", letter)

        # Q: may precede M:, so normalise once the meter is known.
        if raw_tempo:
            info.tempo = normalize_tempo(raw_tempo, info.beat)
        info.lyric = " ".join(lyric_lines)
        return info, "\n".join(body_lines)
