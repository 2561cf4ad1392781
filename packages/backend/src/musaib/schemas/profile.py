"""Pydantic schemas for profiles and the signed-in user.

Learn: Pydantic v2 models validate request/response data. Separate
"Update" schemas (input) from "Read" schemas (output). extra="forbid"
on the self-service update is what keeps role, status, id and the
first_login flag out of reach of a member editing their own profile.
"""

import uuid
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["admin", "member"]
ProfileStatus = Literal["active", "suspended"]


class ProfileRead(BaseModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    nip: str
    phone: Optional[str] = None
    address: Optional[str] = None
    birth_date: Optional[date] = None
    role: Role
    status: ProfileStatus
    first_login: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class ProfileSelfUpdate(BaseModel):
    """Fields a signed-in user may change on their own profile."""

    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    nip: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    birth_date: Optional[date] = None


class ProfileStatusUpdate(BaseModel):
    """Admin action: suspend or reactivate a member."""
    status: ProfileStatus


class CurrentUser(BaseModel):
    """The domain user behind an authenticated session."""

    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    role: Role
    first_login: bool
    status: ProfileStatus
    profile: ProfileRead

    @classmethod
    def from_profile(cls, email: str, profile: ProfileRead) -> "CurrentUser":
        return cls(
            id=profile.id,
            email=email,
            first_name=profile.first_name,
            last_name=profile.last_name,
            role=profile.role,
            first_login=profile.first_login,
            status=profile.status,
            profile=profile,
        )
