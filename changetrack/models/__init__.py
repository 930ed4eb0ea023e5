from .change import ChangeRequest, Status, Priority, Impact
from .comment import Comment
from .user import User, Role
