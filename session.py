import json
import logging
from typing import Optional
from urllib.parse import unquote

import jwt
from fastapi import Request

from config import Settings

logger = logging.getLogger(__name__)

USER_DATA_COOKIE = "userData"


def user_id_from_token(token: str, settings: Settings) -> Optional[str]:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        logger.info("Ignoring expired session token")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning("Ignoring invalid session token: %s", e)
        return None
    user_id = payload.get("id") or payload.get("userId")
    return str(user_id) if user_id else None


def user_id_from_cookie(raw: str) -> Optional[str]:
    try:
        data = json.loads(unquote(raw))
    except ValueError as e:
        logger.warning("Error parsing %s cookie: %s", USER_DATA_COOKIE, e)
        return None
    if not isinstance(data, dict):
        return None
    user_id = data.get("userId")
    return str(user_id) if user_id else None


def resolve_session_user_id(request: Request, settings: Settings) -> Optional[str]:
    """Acting user from a bearer token, falling back to the userData cookie."""
    auth = request.headers.get("authorization", "")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        user_id = user_id_from_token(token.strip(), settings)
        if user_id:
            return user_id
    raw = request.cookies.get(USER_DATA_COOKIE)
    if raw:
        return user_id_from_cookie(raw)
    return None


def get_session_user_id(request: Request) -> Optional[str]:
    return resolve_session_user_id(request, request.app.state.settings)
