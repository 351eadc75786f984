"""
Authentication endpoints.

Login trades the shared password for a session cookie; the cookie is
the only credential the file endpoints accept. There is exactly one
account, so a failed login never says anything beyond "invalid".
"""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StrictStr

from ...core.auth.sessions import SESSION_COOKIE_NAME
from ..dependencies import SessionManagerDep, SessionToken, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class LoginRequest(BaseModel):
    """Login attempt."""
    password: StrictStr = Field(
        min_length=1,
        description="The shared dashboard password",
    )


class AuthResponse(BaseModel):
    success: bool
    message: str


class AuthStatusResponse(BaseModel):
    authenticated: bool


def _set_session_cookie(
    response: JSONResponse,
    token: str,
    max_age: int,
    secure: bool,
) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=secure,
        samesite="strict",
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    summary="Log in",
    description="Exchange the dashboard password for a session cookie",
    responses={401: {"description": "Invalid password"}},
)
async def login(
    payload: LoginRequest,
    request: Request,
    sessions: SessionManagerDep,
    settings: SettingsDep,
) -> JSONResponse:
    """
    Validate the password and start a session.

    The cookie is http-only, strict same-site, and secure in production.
    Its max-age matches the server-side session lifetime.
    """
    if not sessions.validate_password(payload.password):
        logger.warning(
            "Failed login attempt",
            extra={"client": request.client.host if request.client else "unknown"}
        )
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Invalid password"},
        )

    token = sessions.create_session()

    response = JSONResponse(
        status_code=status.HTTP_200_OK,
        content=AuthResponse(success=True, message="Authenticated").model_dump(),
    )
    _set_session_cookie(
        response,
        token,
        max_age=sessions.ttl_seconds,
        secure=settings.is_production,
    )

    logger.info("Session created", extra={"active_sessions": sessions.active_count})

    return response


@router.get(
    "",
    response_model=AuthStatusResponse,
    summary="Check session",
    responses={401: {"model": AuthStatusResponse}},
)
async def auth_status(
    sessions: SessionManagerDep,
    token: SessionToken,
) -> JSONResponse:
    """Report whether the session cookie is still valid."""
    if not token or not sessions.is_valid_session(token):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"authenticated": False},
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"authenticated": True},
    )


@router.delete(
    "",
    response_model=AuthResponse,
    summary="Log out",
)
async def logout(
    sessions: SessionManagerDep,
    settings: SettingsDep,
    token: SessionToken,
) -> JSONResponse:
    """
    End the session.

    Always succeeds: the server-side session is dropped if one was
    presented, and the cookie is overwritten with an expired one.
    """
    if token:
        sessions.destroy_session(token)

    response = JSONResponse(
        status_code=status.HTTP_200_OK,
        content=AuthResponse(success=True, message="Logged out").model_dump(),
    )
    _set_session_cookie(response, "", max_age=0, secure=settings.is_production)

    return response
