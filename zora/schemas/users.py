from pydantic import BaseModel, Field
from typing import Optional

from zora.models.core import UserRole

class UserIn(BaseModel):
    username: str = Field(min_length=3, max_length=80)
    name: str
    password: str = Field(min_length=6)
    email: Optional[str] = None
    role: UserRole = UserRole.OPERATOR

class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)
    role: Optional[UserRole] = None
    active: Optional[bool] = None
