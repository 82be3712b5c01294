import logging

from fastapi import Header, HTTPException, status

from app.core.tokens import InvalidAccessTokenError, verify_access_token

logger = logging.getLogger(__name__)


def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    if authorization is None:
        logger.info("bearer_auth_checked auth_ok=%s reason=missing_header", False)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )

    scheme, _, token = authorization.partition(" ")
    auth_ok = scheme.lower() == "bearer" and bool(token.strip())
    logger.info("bearer_auth_checked auth_ok=%s reason=%s", auth_ok, "ok" if auth_ok else "invalid_format")
    if not auth_ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header must be in format: Bearer <token>",
        )
    return token.strip()


def get_current_user_id(authorization: str | None = Header(default=None)) -> str:
    token = get_bearer_token(authorization)
    try:
        user_id = verify_access_token(token)
    except InvalidAccessTokenError as exc:
        logger.info("access_token_checked auth_ok=%s reason=%s", False, exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    logger.info("access_token_checked auth_ok=%s user_id=%s", True, user_id)
    return user_id
