from __future__ import annotations


class LademittelError(Exception):
    """Base class for errors raised by the ledger pipeline."""


class ConfigurationError(LademittelError):
    """Raised when settings or an engine config file cannot be used."""


class OracleFailure(LademittelError):
    """
    The vision oracle did not produce a usable answer.
    Transient: callers retry with backoff; a terminal failure degrades the
    affected page/group to a warning.
    """

    def __init__(self, message: str, *, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


class ParseFailure(OracleFailure):
    """Oracle text could not be parsed as JSON."""

    def __init__(self, message: str, *, raw: str = ""):
        super().__init__(message)
        self.raw = raw
