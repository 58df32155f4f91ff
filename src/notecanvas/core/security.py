"""
Caller Identity

Authentication is handled upstream; requests reach the API with the
verified owner id in the X-User-Id header.
"""

from fastapi import Header, HTTPException, status

from notecanvas.core.exceptions import Unauthenticated


def resolve_owner_id(raw: str | None) -> str:
    """Return the stripped owner id or raise Unauthenticated."""
    if raw is None or not raw.strip():
        raise Unauthenticated("Missing caller identity")
    return raw.strip()


async def get_current_owner(x_user_id: str | None = Header(default=None)) -> str:
    """FastAPI dependency returning the caller's owner id (401 if absent)."""
    try:
        return resolve_owner_id(x_user_id)
    except Unauthenticated as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)
        ) from e
