"""Pydantic schemas for service requests.

Learn: ServiceRequestRead is the "expanded" shape — every fetch of a
request carries its service, its beneficiary (None = the member themself)
and the requesting member's profile.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from musaib.schemas.family import FamilyMemberRead
from musaib.schemas.profile import ProfileRead
from musaib.schemas.service import ServiceRead

RequestStatus = Literal["pending", "approved", "rejected"]


class ServiceRequestCreate(BaseModel):
    service_id: uuid.UUID
    beneficiary_id: Optional[uuid.UUID] = None
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: str = Field(default="", max_length=2000)


class StatusChange(BaseModel):
    """Admin decision on a request.

    "pending" is accepted here so the state machine, not the schema,
    reports the invalid transition.
    """
    status: RequestStatus
    admin_comments: Optional[str] = Field(None, max_length=2000)


class ServiceRequestRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    service_id: uuid.UUID
    beneficiary_id: Optional[uuid.UUID] = None
    amount: Decimal
    description: str
    status: RequestStatus
    admin_comments: Optional[str] = None
    submitted_at: datetime
    processed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    # Relations
    service: Optional[ServiceRead] = None
    beneficiary: Optional[FamilyMemberRead] = None
    user: Optional[ProfileRead] = None

    model_config = {"from_attributes": True}
