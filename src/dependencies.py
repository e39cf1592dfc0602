"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException


@dataclass(frozen=True)
class AuthContext:
    """Caller identity forwarded by the upstream auth gateway."""

    user_id: uuid.UUID


async def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
) -> AuthContext:
    """Read the authenticated user id from the ``X-User-Id`` header.

    Session handling lives in the gateway in front of this service; it
    strips any client-supplied value and sets the header after verifying
    the session.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return AuthContext(user_id=uuid.UUID(x_user_id))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user id")


# Annotated shortcut for route signatures
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]
