from pydantic import BaseModel
from typing import Optional

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class UserInfo(BaseModel):
    id: str
    email: Optional[str] = None

class LoginResponse(BaseModel):
    success: bool = True
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserInfo
