from __future__ import annotations
from typing import List
from sqlalchemy.orm import Session

from changetrack.core.errors import ValidationError
from changetrack.crud.change import change_crud, check_id
from changetrack.models.comment import Comment
from changetrack.models.user import User

def list_comments(db: Session, change_id: str) -> List[Comment]:
    """Chronological (oldest first) comments of an existing change."""
    change_crud.require_change(db, change_id)
    return (
        db.query(Comment)
        .filter(Comment.change_id == change_id)
        .order_by(Comment.created_at.asc())
        .all()
    )

def add_comment(db: Session, change_id: str, author_id: str, content: str) -> Comment:
    """Free-form discussion comment; leaves status and updated_at alone."""
    text = (content or "").strip()
    if not text:
        raise ValidationError("Comment content is required")
    change_crud.require_change(db, change_id)
    author = db.get(User, check_id(author_id, "user"))
    if author is None:
        raise ValidationError("User not found")
    c = Comment(content=text, change_id=change_id, user=author)
    db.add(c); db.commit(); db.refresh(c)
    return c
