# vidbrief/core/errors.py

class VidbriefError(Exception):
    """Base error rendered as a structured JSON body by the API."""
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(VidbriefError):
    """Missing or malformed required field. Not retried."""
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(VidbriefError):
    status_code = 404
    code = "NOT_FOUND"


class UpstreamError(VidbriefError):
    """Mux or Gemini call failed or timed out."""
    status_code = 502
    code = "UPSTREAM_ERROR"


class TranscriptNotReady(UpstreamError):
    """The transcript endpoint answered but the text is still empty."""
    code = "TRANSCRIPT_NOT_READY"


class ConflictError(VidbriefError):
    status_code = 409
    code = "CONFLICT"


class UnauthorizedError(VidbriefError):
    status_code = 401
    code = "UNAUTHORIZED"
