"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be swapped for testing
- Configuration is centralized

The session manager and storage client are built once by the
application factory and live on app.state for the app's lifetime, so
each app instance (and each test) gets its own session table.
"""

import logging
from typing import Annotated, Optional

from fastapi import Cookie, Depends, HTTPException, Request, status

from ..config.settings import Settings
from ..core.auth.sessions import SESSION_COOKIE_NAME, SessionManager
from ..infrastructure.storage.client import StorageClient, StorageConfig

logger = logging.getLogger(__name__)


def build_storage_config(settings: Settings) -> StorageConfig:
    """Translate environment settings into storage client configuration."""
    return StorageConfig(
        access_key_id=settings.r2_access_key_id,
        secret_access_key=settings.r2_secret_access_key,
        bucket_name=settings.r2_bucket_name,
        endpoint_url=settings.r2_endpoint,
        public_url=settings.r2_public_url,
        app_url=settings.app_url,
    )


# ---------------------------------------------------------------------------
# Application-scoped Dependencies
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    """Settings the running app was created with."""
    return request.app.state.settings


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_storage_client(request: Request) -> StorageClient:
    return request.app.state.storage_client


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def get_session_token(
    upload_session: Annotated[Optional[str], Cookie(alias=SESSION_COOKIE_NAME)] = None,
) -> Optional[str]:
    """Raw bearer token from the session cookie, if any."""
    return upload_session or None


def require_session(
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
    token: Annotated[Optional[str], Depends(get_session_token)],
) -> str:
    """
    Gate for every file endpoint.

    Raises 401 when the cookie is missing, unknown, or expired. The
    response never says which of those it was.
    """
    if not token or not sessions.is_valid_session(token):
        logger.debug("Rejected request without a valid session")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return token


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedSession = Annotated[str, Depends(require_session)]
SessionToken = Annotated[Optional[str], Depends(get_session_token)]
SessionManagerDep = Annotated[SessionManager, Depends(get_session_manager)]
StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
