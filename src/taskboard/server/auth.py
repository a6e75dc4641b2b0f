"""Caller identity for the board API.

Users are authenticated by an external identity service that forwards the
resolved user id in the ``X-User-Id`` header.  This module only reads it.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException

from ..constants import USER_HEADER


async def current_user(x_user_id: Optional[str] = Header(None, alias=USER_HEADER)) -> str:
    """Return the caller's user id, or reject the request with 401."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail=f"Missing {USER_HEADER} header")
    return user_id
