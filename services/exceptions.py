"""
Error taxonomy shared by the services and the HTTP layer.
"""


class ProcurementError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ProcurementError):
    """Missing or malformed input. Never retried."""

    status_code = 400


class NotFoundError(ProcurementError):
    status_code = 404


class StateTransitionError(ProcurementError):
    """Requested status change is not allowed from the current status."""

    status_code = 409


class ExternalGenerationError(Exception):
    """Text generation failed. Recovered locally with canned text."""
