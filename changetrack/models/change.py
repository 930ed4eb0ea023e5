from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum, uuid

from changetrack.core.database import Base


class Status(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class Priority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

class Impact(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


def new_id() -> str:
    return uuid.uuid4().hex


class ChangeRequest(Base):
    __tablename__ = "change_requests"

    id = Column(String(64), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    type = Column(String(64), nullable=True)                # e.g. INFRASTRUCTURE, SECURITY
    status = Column(String(16), default=Status.PENDING.value, nullable=False, index=True)
    priority = Column(String(16), default=Priority.MEDIUM.value, nullable=False, index=True)
    impact = Column(String(16), default=Impact.MEDIUM.value, nullable=False)
    systems_affected = Column(JSON, default=list)           # ["billing-db", "vpn", ...]
    requested_by_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    approved_by_id = Column(String(64), ForeignKey("users.id"), nullable=True)
    planned_start = Column(DateTime, nullable=True)
    planned_end = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    requested_by = relationship("User", foreign_keys=[requested_by_id], lazy="joined")
    approved_by = relationship("User", foreign_keys=[approved_by_id], lazy="joined")
    comments = relationship(
        "Comment",
        back_populates="change",
        order_by="Comment.created_at",
        cascade="all, delete-orphan",
        lazy="select",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN (" + ",".join(f"'{s.value}'" for s in Status) + ")",
            name="ck_change_requests_status",
        ),
    )

    # UPDATE ... WHERE version = :seen; a concurrent writer makes the flush fail
    __mapper_args__ = {"version_id_col": version}

    @property
    def is_approved(self) -> bool:
        return self.approved_by_id is not None
