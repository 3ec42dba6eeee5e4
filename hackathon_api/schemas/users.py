"""
User & Authentication API Schemas (Pydantic)
"""
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from hackathon_api.orm.user import AuthProvider, UserRole


class UserRegister(BaseModel):
    """Registration schema; role defaults to participant."""
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=255)
    auth_provider: AuthProvider = AuthProvider.email
    role: UserRole = UserRole.participant

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters long")
        return v

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class UserLogin(BaseModel):
    """JSON login schema"""
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str
    user_id: int


class UserUpdate(BaseModel):
    """Profile update; at least one field must be provided."""
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v

    @model_validator(mode="after")
    def require_one_field(self):
        if self.name is None and self.email is None:
            raise ValueError("At least one field must be provided for update")
        return self


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=255)
    confirm_password: str = Field(..., min_length=6, max_length=255)
