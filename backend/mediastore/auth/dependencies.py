"""
FastAPI dependencies for authentication.

Authentication happens upstream (API gateway / session layer); this service
only consumes the resolved identity it forwards in request headers.
"""
from typing import Optional

from fastapi import Header, HTTPException, status

from mediastore.storage.deletion import Principal


async def get_current_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Principal:
    """
    FastAPI dependency that returns the caller forwarded by the auth layer.

    Raises:
        HTTPException 401: If the user id or role header is missing
    """
    user_id = (x_user_id or "").strip()
    role = (x_user_role or "").strip()

    if not user_id or not role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authenticated user",
        )

    return Principal(user_id=user_id, role=role.lower())
