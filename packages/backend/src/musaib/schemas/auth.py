"""Pydantic schemas for the public auth pages."""

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str
    password: str


class PasswordResetRequest(BaseModel):
    email: str


class ChangePasswordRequest(BaseModel):
    current_password: str = ""  # not needed after a recovery link
    new_password: str = Field(min_length=8)
