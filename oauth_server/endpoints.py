"""HTTP endpoints for the authorization server.

This module contains:
- Discovery metadata (/.well-known/oauth-authorization-server)
- Browser flow (/login, /auth, /oauth/authorize)
- Token endpoint (/oauth/token) and revocation (/oauth/revoke)
- Protected resource example (/oauth/userinfo)

Components are looked up on `request.app.state.oauth`, so every app
instance carries its own isolated stores.
"""

import base64
import binascii
import html
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote_plus

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from oauth_server.clients import ClientRegistry
from oauth_server.coordinator import AuthorizationCoordinator
from oauth_server.credentials import CredentialValidator
from oauth_server.errors import (
    InvalidCredentials,
    MalformedRequest,
    OAuthError,
    UnknownClient,
    UnsupportedGrantType,
)
from oauth_server.middleware import BearerTokenValidator
from oauth_server.models import AUTHORIZATION_CODE, PASSWORD
from oauth_server.sessions import SessionBridge
from oauth_server.stores import AuthorizationCodeStore, TokenStore
from oauth_server.templates import AUTH_PAGE, ERROR_PAGE, LOGIN_PAGE

logger = logging.getLogger(__name__)

router = APIRouter(tags=["oauth"])

AUTHORIZE_PATH = "/oauth/authorize"
TOKEN_PATH = "/oauth/token"
REVOKE_PATH = "/oauth/revoke"
USERINFO_PATH = "/oauth/userinfo"

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


@dataclass
class OAuthComponents:
    """Everything the endpoints need, wired once per app."""

    issuer_url: str
    clients: ClientRegistry
    credentials: CredentialValidator
    sessions: SessionBridge
    codes: AuthorizationCodeStore
    tokens: TokenStore
    coordinator: AuthorizationCoordinator
    bearer: BearerTokenValidator


def get_components(request: Request) -> OAuthComponents:
    return request.app.state.oauth


def _error_page(error: OAuthError, title: str = "Authorization failed") -> HTMLResponse:
    return HTMLResponse(
        ERROR_PAGE.format(title=html.escape(title), message=html.escape(error.description)),
        status_code=error.status_code,
    )


def _token_error(error: OAuthError) -> JSONResponse:
    headers = dict(NO_STORE_HEADERS)
    if isinstance(error, UnknownClient):
        headers["WWW-Authenticate"] = 'Basic realm="oauth"'
    # Bad resource-owner credentials are a grant failure here, not a 401.
    status_code = 400 if isinstance(error, InvalidCredentials) else error.status_code
    return JSONResponse(error.to_dict(), status_code=status_code, headers=headers)


def _basic_credentials(request: Request) -> tuple[Optional[str], Optional[str]]:
    """client_id/client_secret from an HTTP Basic header, if present."""
    header = request.headers.get("Authorization", "")
    scheme, _, encoded = header.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None, None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise MalformedRequest("Malformed Basic authorization header") from e
    client_id, sep, client_secret = decoded.partition(":")
    if not sep:
        raise MalformedRequest("Malformed Basic authorization header")
    return unquote_plus(client_id), unquote_plus(client_secret)


def _client_credentials(request: Request, client_id: Optional[str], client_secret: Optional[str]):
    basic_id, basic_secret = _basic_credentials(request)
    if basic_id is not None:
        if client_id and client_id != basic_id:
            raise MalformedRequest("client_id does not match Authorization header")
        return basic_id, basic_secret
    return client_id, client_secret


# ============== Discovery ==============

@router.get("/.well-known/oauth-authorization-server")
async def authorization_server_metadata(oauth: OAuthComponents = Depends(get_components)):
    """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
    issuer = oauth.issuer_url
    return {
        "issuer": issuer,
        "authorization_endpoint": f"{issuer}{AUTHORIZE_PATH}",
        "token_endpoint": f"{issuer}{TOKEN_PATH}",
        "revocation_endpoint": f"{issuer}{REVOKE_PATH}",
        "userinfo_endpoint": f"{issuer}{USERINFO_PATH}",
        "response_types_supported": ["code"],
        "response_modes_supported": ["query"],
        "grant_types_supported": [AUTHORIZATION_CODE, PASSWORD],
        "token_endpoint_auth_methods_supported": ["client_secret_basic", "client_secret_post", "none"],
    }


# ============== Browser Flow ==============

@router.get("/login")
async def login_page(oauth: OAuthComponents = Depends(get_components)):
    """Show login form."""
    return HTMLResponse(LOGIN_PAGE.format(error="", login_path=oauth.coordinator.login_path))


@router.post("/login")
async def login_submit(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    oauth: OAuthComponents = Depends(get_components),
):
    """Handle login form submission."""
    handle = oauth.sessions.start(request)
    try:
        location = oauth.coordinator.login(handle, username, password)
    except InvalidCredentials as e:
        error_html = f'<div class="error">{html.escape(e.description)}</div>'
        return HTMLResponse(
            LOGIN_PAGE.format(error=error_html, login_path=oauth.coordinator.login_path),
            status_code=401,
        )
    except OAuthError as e:
        return _error_page(e)

    response = RedirectResponse(url=location, status_code=302)
    oauth.sessions.bind(handle, response)
    return response


@router.get("/auth")
async def resume_page(request: Request, oauth: OAuthComponents = Depends(get_components)):
    """Consent page shown after login; submitting it resumes /oauth/authorize."""
    handle = oauth.sessions.start(request)
    user_id = oauth.coordinator.logged_in_user(handle)
    if user_id is None:
        return RedirectResponse(url=oauth.coordinator.login_path, status_code=302)

    return HTMLResponse(AUTH_PAGE.format(
        user_id=html.escape(str(user_id)),
        authorize_path=AUTHORIZE_PATH,
    ))


@router.api_route(AUTHORIZE_PATH, methods=["GET", "POST"])
async def authorize(request: Request, oauth: OAuthComponents = Depends(get_components)):
    """OAuth 2.0 Authorization Endpoint.

    Redirects to the login page, or back to the client with a code.
    """
    form = dict(request.query_params)
    if request.method == "POST":
        form.update({key: str(value) for key, value in (await request.form()).items()})

    handle = oauth.sessions.start(request)
    try:
        outcome = oauth.coordinator.authorize(handle, form)
    except OAuthError as e:
        return JSONResponse(e.to_dict(), status_code=e.status_code)

    response = RedirectResponse(url=outcome.location, status_code=302)
    oauth.sessions.bind(handle, response)
    return response


# ============== Token Endpoint ==============

@router.post(TOKEN_PATH)
async def token(
    request: Request,
    grant_type: str = Form(None),
    code: str = Form(None),
    redirect_uri: str = Form(None),
    client_id: str = Form(None),
    client_secret: str = Form(None),
    username: str = Form(None),
    password: str = Form(None),
    scope: str = Form(""),
    oauth: OAuthComponents = Depends(get_components),
):
    """OAuth 2.0 Token Endpoint."""
    logger.debug(f"[TOKEN] grant_type: {grant_type}, client_id: {client_id}")

    try:
        client_id, client_secret = _client_credentials(request, client_id, client_secret)
        if not client_id:
            raise MalformedRequest("Missing client_id")

        if grant_type == AUTHORIZATION_CODE:
            if not code or not redirect_uri:
                raise MalformedRequest("code and redirect_uri are required")
            issued = oauth.tokens.issue_from_code(code, client_id, redirect_uri, client_secret)

        elif grant_type == PASSWORD:
            if not username or password is None:
                raise MalformedRequest("username and password are required")
            issued = oauth.tokens.issue_from_password(client_id, client_secret, username, password, scope or "")

        else:
            raise UnsupportedGrantType(f"Unsupported grant_type: {grant_type}")

    except OAuthError as e:
        logger.info(f"[TOKEN] Rejected {grant_type} request from {client_id}: {e.error}")
        return _token_error(e)

    return JSONResponse(issued.to_response(oauth.tokens.clock.now()), headers=NO_STORE_HEADERS)


@router.post(REVOKE_PATH)
async def revoke(
    request: Request,
    token: str = Form(None),
    client_id: str = Form(None),
    client_secret: str = Form(None),
    oauth: OAuthComponents = Depends(get_components),
):
    """Token revocation (RFC 7009). Unknown tokens still answer 200."""
    try:
        client_id, client_secret = _client_credentials(request, client_id, client_secret)
        if not client_id or not oauth.clients.validate(client_id, client_secret):
            raise UnknownClient()
        if not token:
            raise MalformedRequest("Missing token")
    except OAuthError as e:
        return _token_error(e)

    oauth.tokens.revoke(token, client_id=client_id)
    return JSONResponse({}, headers=NO_STORE_HEADERS)


# ============== Protected Resource ==============

@router.get(USERINFO_PATH)
async def userinfo(request: Request, oauth: OAuthComponents = Depends(get_components)):
    """Identity claims for the bearer of a valid access token."""
    try:
        claims = oauth.bearer.authenticate(request.headers.get("Authorization"))
    except OAuthError as e:
        return JSONResponse(
            e.to_dict(),
            status_code=401,
            headers={"WWW-Authenticate": f'Bearer error="{e.error}"'},
        )

    body = oauth.credentials.profile(claims.user_id)
    body.update({
        "sub": claims.user_id,
        "client_id": claims.client_id,
        "scope": claims.scope,
    })
    return JSONResponse(body)
