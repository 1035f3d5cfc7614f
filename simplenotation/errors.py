"""Exception types raised by simplenotation.

Parsing never raises for malformed notation; these cover bad loader input
and invalid player commands.
"""


class SimpleNotationError(Exception):
    """Base class for all simplenotation errors."""


class DataError(SimpleNotationError, ValueError):
    """Score data handed to the loader has the wrong shape or type."""


class PlaybackError(SimpleNotationError, ValueError):
    """A scheduler command was given an argument it cannot honour."""
