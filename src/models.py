from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, HttpUrl


class URLRecord(BaseModel):
    id: int
    short_url: str
    long_url: str
    user_id: int
    created_at: datetime
    updated_at: datetime


class User(BaseModel):
    id: int
    email: str
    password_hash: str
    created_at: datetime
    updated_at: datetime
    refresh_token: Optional[str] = None
    refresh_token_revoke_date: Optional[datetime] = None


class UserOut(BaseModel):
    id: int
    email: str
    created_at: datetime
    updated_at: datetime


class LoginOut(BaseModel):
    id: int
    email: str
    token: str
    refresh_token: str


class TokenOut(BaseModel):
    token: str


class URLIn(BaseModel):
    long_url: HttpUrl


class Credentials(BaseModel):
    email: EmailStr
    password: str
