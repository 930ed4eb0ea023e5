# Request/response contracts shared by the HTTP layer and the board client.
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from changetrack.models.change import Status, Priority, Impact


class UserRef(BaseModel):
    id: str
    name: str
    email: str
    class Config:
        from_attributes = True

class ChangeCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    type: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    impact: Impact = Impact.MEDIUM
    systems_affected: List[str] = []
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None
    class Config:
        extra = "forbid"

class ChangeOut(BaseModel):
    id: str
    title: str
    description: str
    type: Optional[str] = None
    status: Status
    priority: Priority
    impact: Impact
    systems_affected: List[str] = []
    requested_by: UserRef
    approved_by: Optional[UserRef] = None
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    class Config:
        from_attributes = True

class TransitionIn(BaseModel):
    status: Status
    comment: Optional[str] = None
    class Config:
        extra = "forbid"

class CancelIn(BaseModel):
    comment: Optional[str] = None

class CommentIn(BaseModel):
    content: str = Field(min_length=1)

class CommentOut(BaseModel):
    id: str
    change_id: str
    content: str
    user: UserRef
    created_at: datetime
    class Config:
        from_attributes = True

class BoardOut(BaseModel):
    columns: Dict[Status, List[ChangeOut]]

class ErrorOut(BaseModel):
    kind: str
    message: str

class LoginIn(BaseModel):
    email: str

class RefreshIn(BaseModel):
    refresh_token: str
