import logging

import jwt

from app.core.settings import settings

logger = logging.getLogger(__name__)


class InvalidAccessTokenError(Exception):
    pass


def verify_access_token(token: str) -> str:
    if not token:
        raise InvalidAccessTokenError("Missing access token")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise InvalidAccessTokenError("Access token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidAccessTokenError("Invalid access token") from exc

    subject = payload.get("sub")
    if payload.get("type") != "access":
        raise InvalidAccessTokenError("Access token required")
    if not isinstance(subject, str) or not subject:
        raise InvalidAccessTokenError("Access token has no subject")
    return subject


def extract_user_id(token: str | None) -> str:
    try:
        user_id = verify_access_token(token or "")
    except InvalidAccessTokenError as exc:
        logger.info("token_identity_extracted ok=%s reason=%s", False, exc)
        return ""
    logger.info("token_identity_extracted ok=%s user_id=%s", True, user_id)
    return user_id
