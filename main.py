"""OAuth2 authorization server application.

Wires the core components together and exposes them over FastAPI:
- Browser flow: /oauth/authorize -> /login -> /auth -> /oauth/authorize
- Token endpoint (/oauth/token) for authorization_code and password grants
- Bearer-protected user info (/oauth/userinfo)

Each create_app() call builds its own registry, stores and sessions.
"""
import asyncio
import contextlib
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from supabase import create_client

from config import Config, load_config
from oauth_server.clients import ClientRegistry
from oauth_server.clock import Clock, SystemClock
from oauth_server.coordinator import AuthorizationCoordinator
from oauth_server.credentials import (
    CredentialValidator,
    StaticCredentialValidator,
    SupabaseCredentialValidator,
)
from oauth_server.endpoints import OAuthComponents, router as oauth_router
from oauth_server.middleware import BearerTokenValidator, RequestDumpMiddleware
from oauth_server.sessions import InMemorySessionBridge
from oauth_server.stores import AuthorizationCodeStore, TokenStore

# Load environment: .env (local override)
_env_file = Path(".env")
if _env_file.exists():
    load_dotenv(_env_file)

VERSION = "1.0.0"
PURGE_INTERVAL = 60  # seconds

logger = logging.getLogger(__name__)


def build_credentials(config: Config) -> CredentialValidator:
    """Supabase sign-in when configured, otherwise the static account table."""
    supabase_url = os.getenv("SUPABASE_URL", "")
    supabase_key = os.getenv("SUPABASE_ANON_KEY", "")
    if supabase_url and supabase_key:
        logger.info("[STARTUP] Using Supabase for credential validation")
        return SupabaseCredentialValidator(create_client(supabase_url, supabase_key))
    return StaticCredentialValidator(config.accounts)


def build_components(
    config: Config,
    clock: Optional[Clock] = None,
    credentials: Optional[CredentialValidator] = None,
) -> OAuthComponents:
    clock = clock or SystemClock()
    credentials = credentials or build_credentials(config)

    clients = ClientRegistry.from_config(config.clients)
    sessions = InMemorySessionBridge(
        clock=clock,
        lifetime=config.session_lifetime,
        cookie_name=config.session_cookie,
        secure=config.secure_cookies,
    )
    codes = AuthorizationCodeStore(clients, clock=clock, lifetime=config.code_lifetime)
    tokens = TokenStore(
        codes,
        clients,
        credentials,
        clock=clock,
        access_lifetime=config.access_token_lifetime,
    )
    coordinator = AuthorizationCoordinator(clients, sessions, codes, credentials)

    return OAuthComponents(
        issuer_url=config.issuer_url,
        clients=clients,
        credentials=credentials,
        sessions=sessions,
        codes=codes,
        tokens=tokens,
        coordinator=coordinator,
        bearer=BearerTokenValidator(tokens),
    )


async def _purge_loop(components: OAuthComponents, interval: float):
    """Reclaim memory held by expired records; expiry itself is checked on read."""
    while True:
        await asyncio.sleep(interval)
        try:
            codes = components.codes.purge_expired()
            tokens = components.tokens.purge_expired()
            sessions = components.sessions.purge_expired()
            if codes or tokens or sessions:
                logger.info(f"[PURGE] Removed {codes} codes, {tokens} tokens, {sessions} sessions")
        except Exception:
            logger.exception("[PURGE] Error in expiry sweep")


def create_app(
    config: Optional[Config] = None,
    clock: Optional[Clock] = None,
    credentials: Optional[CredentialValidator] = None,
    purge_interval: Optional[float] = PURGE_INTERVAL,
) -> FastAPI:
    config = config or load_config()
    components = build_components(config, clock=clock, credentials=credentials)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        task = None
        if purge_interval:
            task = asyncio.create_task(_purge_loop(components, purge_interval))
        logger.info(f"[STARTUP] Authorize endpoint: {config.issuer_url}/oauth/authorize")
        logger.info(f"[STARTUP] Token endpoint: {config.issuer_url}/oauth/token")
        try:
            yield
        finally:
            if task:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    app = FastAPI(
        title="OAuth2 Authorization Server",
        description="Authorization code and password grants with session-based login",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.oauth = components
    app.state.config = config

    if config.dump_requests:
        logger.info("[STARTUP] Dumping requests")
        app.add_middleware(RequestDumpMiddleware)

    app.include_router(oauth_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "oauth-server", "version": VERSION}

    return app


app = create_app()


# ============== Main Entry Point ==============

if __name__ == "__main__":
    import uvicorn
    from logging_config import setup_logging

    setup_logging()
    _config = app.state.config
    logger.info(f"Server is running at {_config.host}:{_config.port}")
    uvicorn.run(app, host=_config.host, port=_config.port)
