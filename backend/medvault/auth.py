"""
Authentication and authorization dependencies.
"""

import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from medvault.access import Actor, can_administer

logger = logging.getLogger(__name__)

security = HTTPBearer()


def _roles_from_claims(payload: dict) -> list:
    roles = payload.get("roles")
    if roles is None:
        roles = payload.get("role", [])
    if isinstance(roles, str):
        roles = [roles]
    return list(roles)


def verify_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Actor:
    """
    Verify JWT token and return the calling actor.

    Args:
        request: FastAPI request object (to access app settings)
        credentials: HTTP authorization credentials containing the bearer token

    Returns:
        Actor built from the `sub` and `roles` claims

    Raises:
        HTTPException: If token is invalid or expired
    """
    settings = request.app.state.settings
    token = credentials.credentials

    try:
        # Decode and verify the JWT token using the shared secret
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Extract user ID from the 'sub' claim
    user_id = payload.get("sub")

    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user ID",
            headers={"WWW-Authenticate": "Bearer"},
        )

    roles = _roles_from_claims(payload)
    try:
        request.app.state.account_directory.record_seen(str(user_id), roles)
    except Exception as e:
        # Bookkeeping for population statistics only; never blocks the request
        logger.warning(f"Could not record account {user_id}: {e}")
    return Actor.from_roles(str(user_id), roles)


def get_current_actor(actor: Actor = Depends(verify_token)) -> Actor:
    """
    Get the current authenticated actor.

    Args:
        actor: Actor from verified token

    Returns:
        Actor
    """
    return actor


def require_admin(request: Request, actor: Actor = Depends(get_current_actor)) -> Actor:
    """Reject callers without the admin capability."""
    if not can_administer(actor):
        request.app.state.audit_logger.log_unauthorized_access(
            user_id=actor.id,
            document_id=None,
            reason=f"Non-admin attempted {request.method} {request.url.path}",
            ip_address=request.client.host if request.client else None
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required"
        )
    return actor
