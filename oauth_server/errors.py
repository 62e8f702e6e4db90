"""OAuth error taxonomy.

Core components raise these; the HTTP layer turns them into responses.
The `error` attribute is the RFC 6749 error code reported to callers.
"""

from typing import Optional


class OAuthError(Exception):
    """Base class for all authorization server failures."""

    error = "server_error"
    status_code = 500
    default_description = "The server encountered an unexpected condition"

    def __init__(self, description: Optional[str] = None):
        self.description = description or self.default_description
        super().__init__(self.description)

    def to_dict(self) -> dict:
        return {"error": self.error, "error_description": self.description}


class MalformedRequest(OAuthError):
    error = "invalid_request"
    status_code = 400
    default_description = "The request is missing a required parameter or is malformed"


class UnsupportedResponseType(MalformedRequest):
    error = "unsupported_response_type"
    default_description = "Only response_type=code is supported"


class UnsupportedGrantType(MalformedRequest):
    error = "unsupported_grant_type"
    default_description = "The grant type is not supported"


class UnknownClient(OAuthError):
    error = "invalid_client"
    status_code = 401
    default_description = "Client authentication failed"


class InvalidRedirect(OAuthError):
    error = "invalid_request"
    status_code = 400
    default_description = "The redirect URI is not registered for this client"


class UnauthorizedClient(OAuthError):
    error = "unauthorized_client"
    status_code = 400
    default_description = "The client is not allowed to use this grant type"


class InvalidCredentials(OAuthError):
    error = "invalid_grant"
    status_code = 401
    default_description = "Invalid username or password"


class InvalidOrExpiredCode(OAuthError):
    error = "invalid_grant"
    status_code = 400
    default_description = "Invalid or expired authorization code"


class CodeAlreadyRedeemed(InvalidOrExpiredCode):
    """Raised on reuse of a consumed code.

    The outward body is the same as InvalidOrExpiredCode; only logs tell
    the two apart.
    """


class InvalidOrExpiredToken(OAuthError):
    error = "invalid_token"
    status_code = 401
    default_description = "Invalid or expired access token"


class SessionIOFailure(OAuthError):
    error = "server_error"
    status_code = 500
    default_description = "Session storage is unavailable"
