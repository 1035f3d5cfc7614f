"""simplenotation: jianpu and ABC notation parsing with a playback scheduler."""

from simplenotation.abc_parser import AbcParser
from simplenotation.clock import AsyncioClock, Clock, VirtualClock
from simplenotation.config import NotationConfig, ScoreOptions
from simplenotation.errors import DataError, PlaybackError, SimpleNotationError
from simplenotation.models import (
    FlattenedNote,
    MeasureModel,
    NoteDescriptor,
    ParsedScore,
    ScoreInfo,
    StaveModel,
    TemplateData,
)
from simplenotation.parser import TemplateParser
from simplenotation.player import PlaybackScheduler, PlayState
from simplenotation.runtime import DataType, load
from simplenotation.tokenizer import NoteTokenizer

__version__ = "0.1.0"

__all__ = [
    "AbcParser",
    "AsyncioClock",
    "Clock",
    "DataError",
    "DataType",
    "FlattenedNote",
    "MeasureModel",
    "NotationConfig",
    "NoteDescriptor",
    "NoteTokenizer",
    "ParsedScore",
    "PlaybackError",
    "PlaybackScheduler",
    "PlayState",
    "ScoreInfo",
    "ScoreOptions",
    "SimpleNotationError",
    "StaveModel",
    "TemplateData",
    "TemplateParser",
    "VirtualClock",
    "__version__",
    "load",
]
