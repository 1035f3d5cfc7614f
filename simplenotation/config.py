"""Layout configuration owned by one notation instance."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from simplenotation.models import ParsedScore

#: chord-row height used when a score turns out to carry chord symbols
DEFAULT_CHORD_HEIGHT = 13


@dataclass
class ScoreOptions:
    """Sizes used by the layout stage, in SVG user units."""

    padding: int = 10
    line_height: int = 50
    line_space: int = 10
    lyric_height: int = 25
    chord_height: int = 0
    line_weight: int = 200
    allow_over_weight: int = 40


@dataclass
class NotationConfig:
    """Per-instance configuration; never shared between notation instances."""

    score: ScoreOptions = field(default_factory=ScoreOptions)
    debug: bool = False

    def apply_parse_hints(self, parsed: ParsedScore) -> bool:
        """
        Open a chord row if the parsed score needs one and none is configured.

        Returns:
            True if the configuration changed.
        """
        if parsed.suggests_chord_row and self.score.chord_height == 0:
            self.score.chord_height = DEFAULT_CHORD_HEIGHT
            return True
        return False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
