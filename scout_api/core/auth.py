"""
API authentication dependencies.

Users authenticate with a personal API token, sent either as
``Authorization: Bearer <token>`` or in the ``X-API-Key`` header.
Admin routes additionally accept the deployment-wide ``X-Admin-Token``.
"""
from typing import Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from scout_api.core.config import settings
from scout_api.core.database import get_db
from scout_api.core.logging import get_logger
from scout_api.models import User

logger = get_logger(__name__)

API_KEY_NAME = "X-API-Key"
ADMIN_TOKEN_NAME = "X-Admin-Token"

api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)
admin_token_header = APIKeyHeader(name=ADMIN_TOKEN_NAME, auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)

ROLE_SCOUT = "scout"
ROLE_ORG_ADMIN = "org_admin"
ROLE_SUPER_ADMIN = "super_admin"


def _extract_token(
    bearer: Optional[HTTPAuthorizationCredentials],
    api_key: Optional[str],
) -> Optional[str]:
    if bearer and bearer.credentials:
        return bearer.credentials
    return api_key


def get_current_user(
    bearer: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    api_key: Optional[str] = Security(api_key_header),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the calling user from their API token.

    Raises:
        HTTPException: 401 if the token is missing or unknown
    """
    token = _extract_token(bearer, api_key)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthenticated."
        )

    user = db.query(User).filter(User.api_token == token).first()
    if user is None:
        logger.warning("Rejected request with unknown API token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthenticated."
        )
    return user


def validate_admin_token(admin_token: Optional[str] = None) -> bool:
    """
    Validate the deployment admin token.

    Raises:
        HTTPException: 501 if admin token is not configured, 403 if it does not match
    """
    if not settings.ADMIN_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Admin functionality not enabled. Set ADMIN_TOKEN environment variable."
        )

    if not admin_token or admin_token != settings.ADMIN_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin token."
        )

    return True


def require_admin(
    bearer: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    api_key: Optional[str] = Security(api_key_header),
    admin_token: Optional[str] = Security(admin_token_header),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """
    Allow super admins, or callers presenting the deployment admin token.

    Returns the super admin user, or None when the admin token was used.
    """
    if admin_token:
        validate_admin_token(admin_token)
        return None

    user = get_current_user(bearer=bearer, api_key=api_key, db=db)
    if not user.is_super_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized"
        )
    return user
