from pydantic import BaseModel
from typing import Optional

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: Optional[str] = None
    role: Optional[str] = None

class LoginIn(BaseModel):
    username: str
    password: str
