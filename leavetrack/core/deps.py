"""
Dependencies and guards for FastAPI endpoints
"""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from leavetrack.core.config import settings
from leavetrack.core.security import decode_token
from leavetrack.db.session import get_db
from leavetrack.models.user import Role, User
from leavetrack.services.rate_limiter import get_policy, rate_limiter

__all__ = ["get_db", "get_current_user", "require_roles", "rate_limit"]

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Get current authenticated user from JWT token
    """
    token = credentials.credentials

    try:
        payload = decode_token(token)
        sub_value = payload.get("sub")
        if sub_value is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        # Convert string sub back to integer
        user_id: int = int(sub_value)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    return user


def require_roles(*allowed_roles: Role):
    """
    Dependency factory for role-based access control

    Usage:
        @router.get("/hr-only")
        async def hr_endpoint(user: User = Depends(require_roles(Role.HR))):
            ...
    """
    allowed = {Role(r).value for r in allowed_roles}

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        # Allow ADMIN superuser access regardless of required roles
        if current_user.role == Role.ADMIN.value:
            return current_user

        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {sorted(allowed)}"
            )
        return current_user
    return role_checker


def rate_limit(endpoint_class: str):
    """
    Dependency factory throttling an endpoint class per client IP and actor.

    Usage:
        @router.post("", dependencies=[Depends(rate_limit("submission"))])
    """
    policy = get_policy(endpoint_class)

    def limiter(request: Request, current_user: User = Depends(get_current_user)) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return
        client_ip = request.client.host if request.client else "unknown"
        rate_limiter.check(f"{client_ip}:{current_user.id}:{policy.name}", policy)
    return limiter
