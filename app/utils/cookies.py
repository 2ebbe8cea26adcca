"""
Refresh-token cookie helpers
"""
from starlette.responses import Response

from app.config import settings


def set_refresh_cookie(response: Response, refresh_token: str):
    """Store the refresh token in an http-only, same-site strict cookie"""
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=refresh_token,
        max_age=settings.refresh_cookie_max_age,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def clear_refresh_cookie(response: Response):
    """Expire the refresh cookie so the client stops sending a dead token"""
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )
