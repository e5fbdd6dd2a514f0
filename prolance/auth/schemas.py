from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional

from prolance.auth.models import UserRole

SELECTABLE_ROLES = (UserRole.FREELANCER, UserRole.CLIENT, UserRole.BOTH)


class UserSignup(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6)
    role: UserRole = UserRole.FREELANCER

    @field_validator("role")
    @classmethod
    def role_is_selectable(cls, value: UserRole) -> UserRole:
        if value not in SELECTABLE_ROLES:
            raise ValueError("role must be freelancer, client or both")
        return value


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class SignupResponse(BaseModel):
    success: bool = True
    message: str
    user_id: int
    username: str


class LoginResponse(BaseModel):
    success: bool = True
    message: str
    jwt_token: str
    user_id: int
    name: str
    email: str
    username: str
    role: UserRole
    is_admin: bool


class UpdateRoleRequest(BaseModel):
    role: UserRole

    @field_validator("role")
    @classmethod
    def role_is_selectable(cls, value: UserRole) -> UserRole:
        if value not in SELECTABLE_ROLES:
            raise ValueError("role must be freelancer, client or both")
        return value


class ForgotPasswordRequest(BaseModel):
    identifier: str = Field(min_length=1)


class VerifyOtpRequest(BaseModel):
    identifier: str = Field(min_length=1)
    otp: str = Field(min_length=1)


class ResetPasswordRequest(BaseModel):
    identifier: str = Field(min_length=1)
    otp: str = Field(min_length=1)
    new_password: str


class OtpSentResponse(BaseModel):
    success: bool = True
    message: str
    email: str
    expires_in: Optional[int] = None
