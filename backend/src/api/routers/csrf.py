"""CSRF token endpoint."""
from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from api.dependencies import get_settings
from core.config import Settings
from core.csrf import CSRF_COOKIE_NAME, CSRF_TOKEN_MAX_AGE
from core.request_wrapper import AuthorizedRoute, public_request

router = APIRouter(prefix="/api", tags=["csrf"], route_class=AuthorizedRoute)


class CsrfTokenResponse(BaseModel):
    """A freshly signed CSRF token."""

    csrf_token: str


@router.get("/csrf-token", response_model=CsrfTokenResponse)
@public_request("csrf_token")
async def get_csrf_token(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
) -> CsrfTokenResponse:
    """
    Issue a CSRF token.

    The token is returned in the body and set as an HttpOnly cookie.
    """
    token = await request.app.state.csrf.generate()
    response.set_cookie(
        CSRF_COOKIE_NAME,
        token,
        max_age=CSRF_TOKEN_MAX_AGE,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )
    return CsrfTokenResponse(csrf_token=token)
