"""HTTP Basic authentication for the file API."""

import base64
import binascii
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.security.utils import get_authorization_scheme_param

REALM = "fileshare"


class Utf8HTTPBasic(HTTPBasic):
    """HTTPBasic that decodes credentials as UTF-8 and never raises.

    A missing or undecodable header yields ``None``, so the download route can
    still fall back to the public-file check.
    """

    async def __call__(self, request: Request) -> Optional[HTTPBasicCredentials]:  # type: ignore[override]
        authorization = request.headers.get("Authorization")
        scheme, param = get_authorization_scheme_param(authorization)
        if not authorization or scheme.lower() != "basic":
            return None
        try:
            decoded = base64.b64decode(param, validate=True).decode("utf-8")
        except (ValueError, UnicodeDecodeError, binascii.Error):
            return None

        username, separator, password = decoded.partition(":")
        if not separator or not username:
            return None
        return HTTPBasicCredentials(username=username, password=password)


basic_auth = Utf8HTTPBasic(realm=REALM, auto_error=False)


def _secure_equals(left: str, right: str) -> bool:
    return secrets.compare_digest(left.encode("utf-8"), right.encode("utf-8"))


def credentials_valid(request: Request, credentials: Optional[HTTPBasicCredentials]) -> bool:
    if credentials is None:
        return False
    settings = request.app.state.settings
    # Evaluate both so timing does not reveal which half was wrong.
    user_ok = _secure_equals(credentials.username, settings.username)
    password_ok = _secure_equals(credentials.password, settings.password)
    return user_ok and password_ok


def unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": f'Basic realm="{REALM}"'},
    )


def require_auth(
    request: Request,
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_auth),
) -> None:
    if not credentials_valid(request, credentials):
        raise unauthorized()
