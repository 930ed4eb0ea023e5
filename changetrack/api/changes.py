from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from changetrack.core.database import get_db
from changetrack.crud.change import change_crud
from changetrack.crud.comment import add_comment, list_comments
from changetrack.deps.auth import CurrentUser, get_current_user, require_role
from changetrack.deps.services import get_lifecycle_store
from changetrack.models.change import Status
from changetrack.schemas import (
    BoardOut, CancelIn, ChangeCreate, ChangeOut, CommentIn, CommentOut, ErrorOut, TransitionIn,
)
from changetrack.services.lifecycle import LifecycleStore
from changetrack.utils.periods import parse_iso
from changetrack.utils.policy import parse_status

router = APIRouter(
    prefix="/api/changes",
    tags=["changes"],
    responses={code: {"model": ErrorOut} for code in (400, 401, 403, 404, 409, 503)},
)

MANAGERS = ("MANAGER", "ADMIN")


@router.get("", response_model=List[ChangeOut])
def api_list_changes(start: Optional[str] = None, end: Optional[str] = None, status: Optional[str] = None,
                     skip: int = 0, limit: Optional[int] = None,
                     db: Session = Depends(get_db), user: CurrentUser = Depends(get_current_user)):
    st = parse_status(status) if status else None
    rows = change_crud.get_changes(db, parse_iso(start), parse_iso(end), st, skip=skip, limit=limit)
    return [ChangeOut.model_validate(c) for c in rows]

@router.post("", response_model=ChangeOut, status_code=201)
def api_create_change(body: ChangeCreate, db: Session = Depends(get_db),
                      user: CurrentUser = Depends(get_current_user)):
    c = change_crud.create_change(db, body.model_dump(), requested_by_id=user.id)
    return ChangeOut.model_validate(c)

@router.get("/board", response_model=BoardOut)
def api_board(db: Session = Depends(get_db), user: CurrentUser = Depends(get_current_user)):
    grouped = change_crud.get_changes_by_status(db)
    return {"columns": {s: [ChangeOut.model_validate(c) for c in rows] for s, rows in grouped.items()}}

@router.get("/{change_id}", response_model=ChangeOut)
def api_get_change(change_id: str, db: Session = Depends(get_db),
                   user: CurrentUser = Depends(get_current_user)):
    return ChangeOut.model_validate(change_crud.require_change(db, change_id))

@router.patch("/{change_id}/status", response_model=ChangeOut)
def api_transition(change_id: str, body: TransitionIn,
                   store: LifecycleStore = Depends(get_lifecycle_store),
                   user: CurrentUser = Depends(require_role(*MANAGERS))):
    c = store.transition(change_id, body.status, user.id, body.comment)
    return ChangeOut.model_validate(c)

@router.post("/{change_id}/cancel", response_model=ChangeOut)
def api_cancel(change_id: str, body: Optional[CancelIn] = None,
               store: LifecycleStore = Depends(get_lifecycle_store),
               user: CurrentUser = Depends(require_role(*MANAGERS))):
    c = store.cancel(change_id, user.id, body.comment if body else None)
    return ChangeOut.model_validate(c)

@router.post("/{change_id}/copy", response_model=ChangeOut, status_code=201)
def api_copy_change(change_id: str, db: Session = Depends(get_db),
                    user: CurrentUser = Depends(get_current_user)):
    return ChangeOut.model_validate(change_crud.copy_change(db, change_id))

@router.get("/{change_id}/comments", response_model=List[CommentOut])
def api_list_comments(change_id: str, db: Session = Depends(get_db),
                      user: CurrentUser = Depends(get_current_user)):
    return [CommentOut.model_validate(c) for c in list_comments(db, change_id)]

@router.post("/{change_id}/comments", response_model=CommentOut, status_code=201)
def api_add_comment(change_id: str, body: CommentIn, db: Session = Depends(get_db),
                    user: CurrentUser = Depends(get_current_user)):
    return CommentOut.model_validate(add_comment(db, change_id, user.id, body.content))
