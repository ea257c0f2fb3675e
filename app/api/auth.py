"""Email/password sign-in and sign-up against Supabase Auth."""

from fastapi import APIRouter
from pydantic import BaseModel, EmailStr
from typing import Optional

from app.auth.supabase_auth import sign_in, sign_up

router = APIRouter()


class Credentials(BaseModel):
    email: EmailStr
    password: str


class SessionUser(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None


class SessionTokens(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class SessionResponse(BaseModel):
    user: SessionUser
    session: SessionTokens


@router.post("/login", response_model=SessionResponse)
def login(credentials: Credentials):
    return sign_in(credentials.email, credentials.password)


@router.post("/register", response_model=SessionResponse)
def register(credentials: Credentials):
    return sign_up(credentials.email, credentials.password)
