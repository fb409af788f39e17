#  Map Vault - Custom Exceptions
#
#  Typed exception hierarchy so routes and edge handlers can map failures
#  to HTTP status codes without pattern-matching on message strings.
#
#  Depends on: (none)
#  Used by:    services/*, edge/handler.py, routes/*, app.py

class MapVaultError(Exception):
    """Base exception for all map vault business logic errors."""


class AuthenticationError(MapVaultError):
    """Missing, malformed, or expired bearer credential."""


class AuthorizationError(MapVaultError):
    """Subject is authenticated but lacks the required role."""


class PayloadValidationError(MapVaultError):
    """Request body is missing required fields or has malformed ones."""


class RateLimitExceededError(MapVaultError):
    """Subject has used up its request allowance for an endpoint."""

    def __init__(self, endpoint: str, remaining: int = 0):
        super().__init__(f"Rate limit exceeded for {endpoint}")
        self.endpoint = endpoint
        self.remaining = remaining


class UpstreamError(MapVaultError):
    """A third-party provider (speech, OCR, segmentation) failed."""


class StorageError(MapVaultError):
    """Object storage read/write failed."""


class NotFoundError(MapVaultError):
    """Resource (base map, overlay, poster, user) does not exist."""


class InvalidStateError(MapVaultError):
    """Operation not allowed in the current resource state."""
