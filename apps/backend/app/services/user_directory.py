from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from app import models


class UserDirectory:
    """Look up registered users by id or username."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: int) -> models.User | None:
        return self.db.get(models.User, user_id)

    def lookup_by_username(self, username: str | None) -> int | None:
        if not username:
            return None
        user = (
            self.db.query(models.User)
            .filter(func.lower(models.User.username) == username.strip().lower())
            .first()
        )
        return user.id if user else None
