__all__ = ("CacheControlError", "ParseError", "ValidationError", "ExpirationError")


class CacheControlError(Exception):
    """Raised when a Cache-Control header value can not be understood."""


class ParseError(CacheControlError):
    """The header violates the directive grammar."""


class ValidationError(CacheControlError):
    """The header is well-formed, but a directive carries an invalid argument."""


class ExpirationError(ValueError):
    """The side-channel expiration value is not a valid HTTP-date."""
