from pydantic import BaseModel, Field

from typing import Optional


class UserCreate(BaseModel):
    email: str
    password: str = Field(min_length=1)


class UserLogin(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: int
    email: str

    class Config:
        from_attributes = True


class TokenPairResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


# Password reset
class ForgotPasswordRequest(BaseModel):
    email: str


class PasswordChange(BaseModel):
    password: str = Field(min_length=1)
    confirm_password: str


class PasswordResetConfirm(PasswordChange):
    token: Optional[str] = None


class MessageResponse(BaseModel):
    message: str
