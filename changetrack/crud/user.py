from __future__ import annotations
from typing import List, Optional
from sqlalchemy.orm import Session

from changetrack.core.errors import ValidationError
from changetrack.models.user import User, Role

def create_user(db: Session, name: str, email: str, role: str = Role.USER.value) -> User:
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    try:
        role = Role(role).value
    except ValueError:
        raise ValidationError(f"role must be one of {', '.join(r.value for r in Role)}")
    if get_user_by_email(db, email) is not None:
        raise ValidationError("A user with this email already exists")
    u = User(name=(name or email).strip(), email=email, role=role)
    db.add(u); db.commit(); db.refresh(u)
    return u

def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.get(User, user_id)

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == (email or "").strip().lower()).first()

def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.name.asc()).all()
