from __future__ import annotations

from sqlalchemy.orm import Session

from .core.database import SessionLocal
from .models import Category, User

SYSTEM_CATEGORIES = ("Food", "Housing", "Transport", "Leisure", "Salary", "Other")

DEMO_USERS = (
    ("demo@example.com", "demo", "Demo"),
    ("member1@example.com", "member1", "Member 1"),
)


def seed_categories(db: Session) -> None:
    for name in SYSTEM_CATEGORIES:
        exists = db.query(Category).filter_by(name=name, user_id=None).first()
        if not exists:
            db.add(Category(name=name, user_id=None, is_system=True))


def seed() -> None:
    db: Session = SessionLocal()
    try:
        for email, username, name in DEMO_USERS:
            user = db.query(User).filter_by(email=email).first()
            if not user:
                db.add(User(email=email, username=username, name=name, is_active=True))
        seed_categories(db)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
