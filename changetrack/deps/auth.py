import jwt
from fastapi import Depends, Header, HTTPException, Request
from pydantic import BaseModel
from typing import Callable
from changetrack.core.security import decode_token

class CurrentUser(BaseModel):
    id: str
    role: str

def get_current_user(request: Request, authorization: str | None = Header(default=None)) -> CurrentUser:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    try:
        data = decode_token(request.app.state.settings, token, expected_type="access")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid/expired token")
    return CurrentUser(id=data.get("sub", ""), role=data.get("role", "USER"))

def require_role(*allowed: str) -> Callable:
    def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if allowed and user.role not in allowed:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user
    return checker
