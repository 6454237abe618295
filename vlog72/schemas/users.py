from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from typing import Optional

class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)
    display_name: str = Field(min_length=1, max_length=150)
    username: Optional[str] = Field(default=None, min_length=3, max_length=30, pattern=r'^[a-z0-9_]+$')

class TokenOut(BaseModel):
    access_token: str
    token_type: str = 'bearer'
    refresh_token: str | None = None

class RefreshIn(BaseModel):
    refresh_token: str

class LogoutIn(BaseModel):
    refresh_token: str

class UserOut(BaseModel):
    id: int
    username: str
    display_name: str
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    followers_count: int
    following_count: int

    class Config:
        from_attributes = True

class MeOut(UserOut):
    email: EmailStr
    created_at: Optional[datetime] = None

class ProfileOut(BaseModel):
    user: UserOut
    is_following: bool

class DiscoverUserOut(UserOut):
    is_following: bool

class DiscoverOut(BaseModel):
    users: list[DiscoverUserOut]

class ProfileUpdateIn(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    bio: Optional[str] = Field(default=None, max_length=500)
    avatar_url: Optional[str] = None

class ActionOkOut(BaseModel):
    ok: bool = True
    message: Optional[str] = None
