# retail_backend/utils/check_roles.py
from functools import wraps
from typing import Callable, Iterable

from fastapi import HTTPException

from retail_backend.core.logging_config import get_logger

logger = get_logger("auth")

ADMIN = "admin"
SALESMAN = "salesman"

STAFF_ROLES = (ADMIN, SALESMAN)
ADMIN_ONLY = (ADMIN,)


def require_role(roles: Iterable[str]):
    """
    Route decorator checking the acting user's role.

    The decorated route must take the user as the ``_user`` keyword
    (``_user=Depends(get_current_user)``).
    """
    allowed = frozenset(r.lower() for r in roles)

    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, _user, **kwargs):
            if _user is None:
                raise HTTPException(status_code=401, detail="User not authenticated")
            role = (_user.role or "").lower()
            if role not in allowed:
                logger.warning(
                    "permission_denied",
                    extra={"user_id": _user.id, "role": role, "route": func.__name__},
                )
                raise HTTPException(status_code=403, detail="Permission denied")
            return await func(*args, _user=_user, **kwargs)
        return wrapper
    return decorator
