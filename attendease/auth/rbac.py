from fastapi import Depends, HTTPException, status

from attendease.auth.dependencies import get_current_user
from attendease.auth.schemas import CurrentUser


def require_role(*roles: str):
    """
    Dependency factory restricting an endpoint to the given roles.

    Example:
        Depends(require_role("admin"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden",
            )
        return current_user

    return _checker


require_admin = require_role("admin")
require_teacher = require_role("teacher")
require_student = require_role("student")
