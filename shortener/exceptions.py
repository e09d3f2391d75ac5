class ShortenerError(Exception):
    """Base class for errors surfaced by the link registry."""

    code = "error"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class ValidationError(ShortenerError):
    """Invalid input."""

    code = "validation_error"
    status_code = 400


class NotFoundError(ShortenerError):
    """URL not found."""

    code = "not_found"
    status_code = 404


class ForbiddenError(ShortenerError):
    """Delete token does not match."""

    code = "forbidden"
    status_code = 403


class ExpiredError(ShortenerError):
    """URL has expired."""

    code = "expired"
    status_code = 400


class StorageError(ShortenerError):
    """Internal storage error."""

    code = "storage_error"
    status_code = 500


class ExhaustedError(ShortenerError):
    """Could not generate a unique short code."""

    code = "code_space_exhausted"
    status_code = 503
