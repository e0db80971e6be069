"""
Failure taxonomy for the submission pipeline.

Each error carries the HTTP status it maps to and a client-facing message;
``detail`` holds the underlying error text for diagnostics.
"""
from typing import Optional


class SubmissionError(Exception):
    status_code = 500
    default_message = "Failed to submit form data"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(detail or self.message)


class InvalidInputError(SubmissionError):
    """Empty, non-object or unparsable request body"""
    status_code = 400
    default_message = "No form data provided"


class VerificationRejectedError(SubmissionError):
    """Missing token, failed verification or a score below the threshold"""
    status_code = 400
    default_message = "reCAPTCHA verification failed"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None, result=None):
        super().__init__(message, detail=detail or (result.reason if result is not None else None))
        self.result = result


class VerificationUnavailableError(SubmissionError):
    """Verification is enabled but the server-side secret is missing"""
    status_code = 400
    default_message = "reCAPTCHA is not configured on the server"


class UpstreamFailureError(SubmissionError):
    """Network or API error from the verification or spreadsheet service"""
    status_code = 500
