from fastapi import Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole


def require_roles(*roles: UserRole):
    """
    Dependency factory restricting an endpoint to the given roles.

    Example:
        Depends(require_roles(UserRole.HOD, UserRole.ADMIN))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


faculty_and_above = require_roles(UserRole.FACULTY, UserRole.HOD, UserRole.ADMIN)
hod_and_above = require_roles(UserRole.HOD, UserRole.ADMIN)
