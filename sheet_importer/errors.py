"""Error taxonomy for the import worker.

Job-fatal errors (source, mapping, browser setup) end a job as ``failed``.
Errors raised while processing a single row only mark that row as an error.
"""

from __future__ import annotations

from typing import Optional


class ImporterError(Exception):
    """Base class for all worker errors."""


# -- Inbound request errors ----------------------------------------------------
class AuthHeaderError(ImporterError):
    """Inbound signature or timestamp is missing or invalid (HTTP 401)."""


class JobValidationError(ImporterError):
    """Malformed job descriptor (HTTP 400)."""

    def __init__(self, message: str, missing_fields: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.missing_fields = missing_fields or []


class ConcurrentJobError(ImporterError):
    """A job is already processing; the caller must retry later (HTTP 409)."""


class JobStateError(ImporterError):
    """Illegal JobState transition."""


# -- Row source ----------------------------------------------------------------
class SourceError(ImporterError):
    """Base for row source failures."""


class SourceAccessError(SourceError):
    """Credential rejected or the source denied access."""


class SourceNotFoundError(SourceError):
    """Source identifier resolves to nothing."""


class EmptySourceError(SourceError):
    """Source returned no data rows."""


# -- Mapping -------------------------------------------------------------------
class UnknownMappingError(ImporterError):
    """Mapping id is not registered."""


# -- Browser automation --------------------------------------------------------
class AutomationError(ImporterError):
    """Hard failure while driving the automation target."""


class LaunchError(AutomationError):
    """Browser could not be started."""


class AuthenticationError(AutomationError):
    """Login did not reach a logged-in page."""


class NavigationError(AutomationError):
    """Page navigation failed or timed out."""


class JobCancelledError(ImporterError):
    """Job stopped between rows after a cancel request."""
