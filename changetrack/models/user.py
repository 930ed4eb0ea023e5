from sqlalchemy import Column, String, DateTime
from datetime import datetime
import enum

from changetrack.core.database import Base
from changetrack.models.change import new_id

class Role(str, enum.Enum):
    USER = "USER"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"

class User(Base):
    __tablename__ = "users"
    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(16), default=Role.USER.value, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
