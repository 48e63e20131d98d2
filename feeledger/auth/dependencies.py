from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from feeledger.auth.schemas import CurrentUser
from feeledger.core.config import settings
from feeledger.core.enums import FeeManagerRole


# Tokens are issued by the platform auth service; this service only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Resolve the caller and their tenant from the access token claims."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise credentials_exception

    user_id_str = payload.get("user_id") or payload.get("sub")
    tenant_id_str = payload.get("tenant_id")
    role_name = payload.get("role")
    if not user_id_str or not tenant_id_str or not role_name:
        raise credentials_exception

    try:
        user_id = UUID(str(user_id_str))
        tenant_id = UUID(str(tenant_id_str))
    except ValueError:
        raise credentials_exception

    return CurrentUser(
        id=user_id,
        tenant_id=tenant_id,
        role=str(role_name).lower(),
        name=payload.get("name"),
    )


async def require_fee_manager(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Require admin or manager role. Used on every endpoint that moves a ledger."""
    if current_user.role not in {r.value for r in FeeManagerRole}:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins and managers can change fees and payments",
        )
    return current_user
