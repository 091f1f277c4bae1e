class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class InsufficientStockError(AppError):
    pass


class DuplicateUsernameError(AppError):
    pass


class AuthError(AppError):
    pass


class NotAuthenticatedError(AuthError):
    pass


class StorageError(AppError):
    """The backing store rejected a request. Message is the backend's."""
