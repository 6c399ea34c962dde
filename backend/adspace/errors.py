"""
Domain errors raised by services. `adspace.main` renders them as
`{"success": false, "message": ...}` with the matching HTTP status.
"""


class MarketplaceError(Exception):
    status_code = 500
    default_message = "An internal error occurred"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(MarketplaceError):
    status_code = 404
    default_message = "Resource not found"


class Unauthorized(MarketplaceError):
    status_code = 401
    default_message = "Missing or invalid authorization"


class Forbidden(MarketplaceError):
    status_code = 403
    default_message = "You do not have permission to perform this action"


class Conflict(MarketplaceError):
    status_code = 409
    default_message = "The request conflicts with the current state"


class ValidationFailed(MarketplaceError):
    """Field-level failure. `errors` maps field name to messages."""
    status_code = 422
    default_message = "Validation error"

    def __init__(self, errors: dict[str, list[str]], message: str | None = None):
        self.errors = errors
        super().__init__(message)

    @classmethod
    def field(cls, name: str, msg: str) -> "ValidationFailed":
        return cls({name: [msg]})
