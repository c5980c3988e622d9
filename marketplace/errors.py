"""Service-level errors mapped onto HTTP responses by the app factory."""


class MarketplaceError(Exception):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError, ValueError):
    status_code = 400


class Forbidden(MarketplaceError):
    status_code = 403


class NotFound(MarketplaceError):
    status_code = 404


class Conflict(MarketplaceError):
    """Request is well-formed but clashes with current state (stock, cart)."""

    status_code = 409


class Unauthorized(MarketplaceError):
    status_code = 401
