"""Pydantic schemas for family dependents."""

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class FamilyMemberCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    national_id: str = Field(..., min_length=1, max_length=50)
    relationship: str = Field(..., min_length=1, max_length=50)
    birth_date: Optional[date] = None


class FamilyMemberUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    national_id: Optional[str] = Field(None, min_length=1, max_length=50)
    relationship: Optional[str] = Field(None, min_length=1, max_length=50)
    birth_date: Optional[date] = None


class FamilyMemberRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    first_name: str
    last_name: str
    national_id: str
    relationship: str
    birth_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
