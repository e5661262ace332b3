# tiktool/errors.py


class TikToolError(Exception):
    status_code = 400

    def __init__(self, message, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self):
        return {"message": self.message, **self.extra}


class ValidationError(TikToolError):
    status_code = 400


class NotFoundError(TikToolError):
    status_code = 404


class ForbiddenError(TikToolError):
    status_code = 403


class SignatureError(TikToolError):
    """Webhook payload failed signature verification."""

    status_code = 400


class UpstreamError(TikToolError):
    """Store or billing provider failure; the unit of work was rolled back."""

    status_code = 502


class ConflictError(UpstreamError):
    """A concurrent request wrote the same unique row first."""

    status_code = 409
