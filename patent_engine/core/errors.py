"""
Error taxonomy for the extraction engine.

Every failure raised inside a search is one of these. The retry supervisor
reads ``retryable`` to decide whether another attempt can help; the engine
boundary turns whatever is left into an ERROR sentinel.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine failures."""

    retryable: bool = True
    code: str = "ENGINE_ERROR"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class NavigationTimeout(EngineError):
    """Page did not reach its content-ready condition in time."""

    code = "NAVIGATION_TIMEOUT"


class LocatorNotFound(EngineError):
    """No usable locator for a required field, heuristics and fallbacks included."""

    code = "LOCATOR_NOT_FOUND"


class AuthenticationFailed(EngineError):
    """Credentials were rejected (or missing). Retrying cannot fix this."""

    code = "AUTHENTICATION_FAILED"
    retryable = False


class SubmissionFailed(EngineError):
    code = "SUBMISSION_FAILED"


class ExtractionEmpty(EngineError):
    """Every extraction strategy returned zero records for a page."""

    code = "EXTRACTION_EMPTY"


class CollaboratorUnavailable(EngineError):
    """The AI or OCR collaborator failed or answered with an invalid shape."""

    code = "COLLABORATOR_UNAVAILABLE"


class SessionClosedError(EngineError):
    """A session handle was used after ``close``."""

    code = "SESSION_CLOSED"
    retryable = False
