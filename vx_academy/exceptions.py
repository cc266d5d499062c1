"""Domain errors raised by the service layer.

The application's exception handler renders these with the same JSON
envelope as ``HTTPException``; services never import FastAPI so they can be
driven from the scheduler or tests directly.
"""


class AcademyError(Exception):
    """Base class for business rule violations"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(AcademyError):
    status_code = 404


class PermissionDeniedError(AcademyError):
    status_code = 403


class AttemptsExhaustedError(AcademyError):
    """Raised when a learner has used every allowed attempt"""


class InvalidTransitionError(AcademyError):
    """Raised when the assessment flow is asked for an illegal state change"""


class CertificateTemplateError(AcademyError):
    status_code = 500
