from __future__ import annotations

import logging
import warnings


class BwSummaryError(Exception):
    """Base class for errors raised by bwsummary."""


class ValidationError(BwSummaryError, ValueError):
    """Invalid arguments: mismatched lists, missing columns, unknown methods."""


class ConfigError(ValidationError):
    """Contradictory numeric parameters or unsupported genome identifiers."""


class NotFoundError(BwSummaryError, FileNotFoundError):
    """A track or interval file does not exist."""


class SummaryWarning(UserWarning):
    """Non-fatal anomaly detected while summarizing (computation continues)."""


def diagnostic(message: str, logger: logging.Logger, *, stacklevel: int = 3) -> None:
    """Emit a SummaryWarning; the logger only records it at debug level."""
    logger.debug(message)
    warnings.warn(message, SummaryWarning, stacklevel=stacklevel)
