from __future__ import annotations

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app import models


def get_current_user(
    x_user_id: int | None = Header(default=None),
    db: Session = Depends(get_db),
) -> models.User:
    """Very lightweight current user resolver.

    Reads the acting user from the ``X-User-Id`` header. Authentication is
    handled in front of this service; tests may override this dependency to
    simulate different users.
    """
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    user = db.get(models.User, x_user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user
