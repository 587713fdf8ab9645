"""
Shared dependencies: actor id from Bearer token, and the capability check.
The engine only needs an opaque actor id; identity itself is owned by the auth service that issues tokens.
"""
import logging
from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from topic_engine.config import settings

security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)

# can_perform(actor_id, operation, resource) -> bool
CapabilityCheck = Callable[[str, str, dict], bool]


def decode_access_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def get_actor_id(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> str:
    """Require valid Bearer token; return its sub claim or 401."""
    if not credentials or not (getattr(credentials, "credentials", None) or "").strip():
        logger.debug("Auth failed: no Bearer token in request")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Send header: Authorization: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(credentials.credentials)
    if not payload or not str(payload.get("sub") or "").strip():
        logger.debug("Auth failed: invalid or expired token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return str(payload["sub"]).strip()


def allow_all(actor_id: str, operation: str, resource: dict) -> bool:
    return True


def get_capability_check() -> CapabilityCheck:
    """Override in app.dependency_overrides to plug in a real policy."""
    return allow_all


def require(operation: str):
    """
    Dependency factory: resolves the actor and asks the capability check before the handler runs.
    resource carries the path params (e.g. topic_id) so policies can scope by topic.
    """

    def _dependency(
        request: Request,
        actor_id: str = Depends(get_actor_id),
        can_perform: CapabilityCheck = Depends(get_capability_check),
    ) -> str:
        resource = dict(request.path_params)
        if not can_perform(actor_id, operation, resource):
            logger.info("Capability denied: actor_id=%s operation=%s resource=%s", actor_id, operation, resource)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Not allowed to {operation} this topic",
            )
        return actor_id

    return _dependency
