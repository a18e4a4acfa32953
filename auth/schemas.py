"""
Request schemas for signup and login.

Passwords are never whitespace-stripped: leading or trailing spaces are part
of the secret. max_length=255 keeps input well under the point where bcrypt
truncation would matter for realistic passwords.
"""

from enum import Enum

from pydantic import BaseModel, EmailStr, Field


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=255)
    role: RoleEnum = RoleEnum.user


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=255)
