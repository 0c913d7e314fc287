"""Request identity supplied by the upstream authentication layer.

The gateway in front of this service authenticates callers and forwards the
result as headers; they are trusted as-is.
"""

from fastapi import Header, HTTPException


def current_customer(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id


def require_admin(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    if (x_user_role or "").lower() != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return x_user_id
