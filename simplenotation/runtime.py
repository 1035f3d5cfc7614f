"""Loader: picks the parser for a document and returns its ParsedScore."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from simplenotation.abc_parser import AbcParser
from simplenotation.errors import DataError
from simplenotation.models import ParsedScore, ScoreInfo, TemplateData
from simplenotation.parser import TemplateParser


class DataType(str, Enum):
    TEMPLATE = "template"
    ABC = "abc"


def to_template_data(data: TemplateData | Mapping[str, Any]) -> TemplateData:
    """Accept a TemplateData or a ``{"info", "score", "lyric"}`` mapping."""
    if isinstance(data, TemplateData):
        return data
    if not isinstance(data, Mapping):
        raise DataError(f"Template data must be a mapping, got {type(data).__name__}.")
    score = data.get("score")
    if not isinstance(score, str):
        raise DataError("Template data needs a 'score' string.")
    info = data.get("info") or {}
    if not isinstance(info, (Mapping, ScoreInfo)):
        raise DataError("Template 'info' must be a mapping.")
    if not isinstance(info, ScoreInfo):
        info = ScoreInfo.from_mapping(dict(info))
    lyric = data.get("lyric") or ""
    return TemplateData(info=info, score=score, lyric=str(lyric))


def load(
    data: TemplateData | Mapping[str, Any] | str,
    data_type: DataType | str = DataType.TEMPLATE,
) -> ParsedScore:
    """
    Parse a document in either dialect.

    Args:
        data:      TemplateData (or an equivalent mapping) for the template
                   dialect, a string for ABC.
        data_type: ``"template"`` or ``"abc"``.

    Raises:
        DataError: If the data type is unknown or the data has the wrong shape.
    """
    try:
        kind = DataType(data_type)
    except ValueError:
        supported = ", ".join(t.value for t in DataType)
        raise DataError(f"Unsupported data type '{data_type}'. Use one of: {supported}.") from None

    if kind is DataType.ABC:
        if not isinstance(data, str):
            raise DataError("ABC data must be a string.")
        return AbcParser().parse(data)
    return TemplateParser().parse(to_template_data(data))
