"""Pydantic schemas for the benefit service catalog."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    max_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    is_active: bool = True


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    max_amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    is_active: Optional[bool] = None


class ServiceRead(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    max_amount: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
