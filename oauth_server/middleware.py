"""Bearer authentication for resource endpoints, and request dumping.

BearerTokenValidator is a thin layer over TokenStore.validate: tokens
are opaque, so every check is a store lookup.
"""

import logging
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from oauth_server.errors import InvalidOrExpiredToken
from oauth_server.models import TokenClaims
from oauth_server.stores import TokenStore

logger = logging.getLogger(__name__)

REDACTED_HEADERS = {"authorization", "cookie", "set-cookie"}


class BearerTokenValidator:
    """Resolve an Authorization header to token claims."""

    def __init__(self, tokens: TokenStore):
        self.tokens = tokens

    @staticmethod
    def extract(authorization_header: Optional[str]) -> str:
        if not authorization_header:
            raise InvalidOrExpiredToken("Missing Authorization header")

        scheme, _, token = authorization_header.strip().partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token or " " in token:
            raise InvalidOrExpiredToken("Authorization header must use the Bearer scheme")
        return token

    def authenticate(self, authorization_header: Optional[str]) -> TokenClaims:
        token = self.extract(authorization_header)
        try:
            claims = self.tokens.validate(token)
        except InvalidOrExpiredToken:
            logger.info("[AUTH] Request rejected: invalid or expired token")
            raise
        logger.info(f"[AUTH] Request authorized for user {claims.user_id} (client {claims.client_id})")
        return claims


def _redact(headers) -> dict:
    return {
        key: ("<redacted>" if key.lower() in REDACTED_HEADERS else value)
        for key, value in headers.items()
    }


class RequestDumpMiddleware(BaseHTTPMiddleware):
    """Log every request line, headers and body (credentials redacted)."""

    async def dispatch(self, request: Request, call_next):
        body = await request.body()
        logger.info(
            f"[DUMP] {request.method} {request.url.path}"
            f"{'?' + request.url.query if request.url.query else ''} "
            f"headers={_redact(request.headers)} body_bytes={len(body)}"
        )
        response = await call_next(request)
        logger.info(f"[DUMP] {request.method} {request.url.path} -> {response.status_code}")
        return response
