"""
Request and response helpers shared by the endpoint tests
"""
from http.cookies import SimpleCookie
from typing import Dict

import httpx

from app.config import settings


def refresh_cookie(response: httpx.Response):
    """Return the refresh-token morsel from a response's Set-Cookie headers, if any"""
    for header in response.headers.get_list("set-cookie"):
        cookie = SimpleCookie()
        cookie.load(header)
        if settings.REFRESH_COOKIE_NAME in cookie:
            return cookie[settings.REFRESH_COOKIE_NAME]
    return None


def cookie_header(refresh_token: str) -> Dict[str, str]:
    return {"Cookie": f"{settings.REFRESH_COOKIE_NAME}={refresh_token}"}


def bearer(access_token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}
