from typing import Optional


class ElastiCacheLiteError(Exception):
    """Base exception for this library."""


class ConfigurationError(ElastiCacheLiteError):
    """Raised before any request is sent when the client cannot be used."""


class CredentialsNotFound(ConfigurationError):
    """Raised when AWS credentials are missing or cannot be refreshed."""


class SigningError(ElastiCacheLiteError):
    """Raised when request parameters cannot be canonicalized or signed."""


class TransportError(ElastiCacheLiteError):
    """Raised on connection failures and non-success HTTP statuses.

    The response body, when there is one, is embedded in the message so the
    service error code survives for diagnostics.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.reason = reason
        self.body = body


class ServiceError(ElastiCacheLiteError):
    """A failure the service reported with a recognized error code."""

    kind = "ServiceError"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class NotFound(ServiceError):
    """Raised when the cluster, security group or parameter group is absent."""

    kind = "NotFound"


class IdentifierTaken(ServiceError):
    """Raised when the requested identifier already exists."""

    kind = "IdentifierTaken"


class InvalidInstance(ServiceError):
    """Raised when the service rejects a parameter value."""

    kind = "InvalidInstance"
