from sqlalchemy import Column, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from changetrack.core.database import Base
from changetrack.models.change import new_id

class Comment(Base):
    __tablename__ = "comments"
    id = Column(String(64), primary_key=True, default=new_id)
    content = Column(Text, nullable=False)
    change_id = Column(String(64), ForeignKey("change_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    change = relationship("ChangeRequest", back_populates="comments")
    user = relationship("User", lazy="joined")
