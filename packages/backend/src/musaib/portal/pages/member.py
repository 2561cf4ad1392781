"""Member area — dashboard, profile, family, new request, history.

Learn: all member stores are scoped to the signed-in member (their
family, their requests), so nothing here filters by owner by hand. A new
request is checked against the catalog and the member's own family
before it is submitted:

    service must exist and be active
    amount must not exceed the service's max_amount
    beneficiary must be None (the member) or one of their dependents
"""

import uuid
from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query

from musaib.backend.rows import BackendError, RowNotFound
from musaib.portal import views
from musaib.portal.dependencies import require_page
from musaib.portal.runtime import PortalSession
from musaib.schemas.family import (
    FamilyMemberCreate,
    FamilyMemberRead,
    FamilyMemberUpdate,
)
from musaib.schemas.request import ServiceRequestCreate, ServiceRequestRead

logger = structlog.get_logger()
router = APIRouter(prefix="/member")

SELF_BENEFICIARY = "Moi-même"


def _http_error(e: BackendError) -> HTTPException:
    if isinstance(e, RowNotFound):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ═══════════════════════════════════════════════════════════
# Dashboard
# ═══════════════════════════════════════════════════════════


@router.get("")
async def dashboard(portal: PortalSession = Depends(require_page)):
    requests = await portal.my_requests()
    family = await portal.family()
    counts = views.request_counts(requests.items)
    return {
        "page": "member-dashboard",
        "user": portal.auth.current_user,
        "stats": {
            "submitted_requests": len(requests.items),
            "pending_requests": counts["pending"],
            "approved_requests": counts["approved"],
            "family_members": len(family.items),
        },
        "recent_requests": requests.items[:3],
        "error": requests.error or family.error,
    }


# ═══════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════


@router.get("/profile")
async def profile_page(portal: PortalSession = Depends(require_page)):
    return {"page": "member-profile", "user": portal.auth.current_user}


@router.patch("/profile")
async def update_profile(
    updates: dict[str, Any] = Body(...),
    portal: PortalSession = Depends(require_page),
):
    """Edit own profile. Role, status, id and first_login are refused with a 400."""
    if not await portal.update_profile(updates):
        raise HTTPException(status_code=400, detail="Profile could not be updated")
    return {"user": portal.auth.current_user}


# ═══════════════════════════════════════════════════════════
# Family
# ═══════════════════════════════════════════════════════════


@router.get("/family")
async def family_page(portal: PortalSession = Depends(require_page)):
    store = await portal.family()
    return {"page": "member-family", "family": store.items, "error": store.error}


@router.post("/family", response_model=FamilyMemberRead, status_code=201)
async def add_family_member(
    body: FamilyMemberCreate,
    portal: PortalSession = Depends(require_page),
):
    store = await portal.family()
    try:
        return await store.create(body)
    except BackendError as e:
        raise _http_error(e)


@router.patch("/family/{member_id}", response_model=FamilyMemberRead)
async def update_family_member(
    member_id: uuid.UUID,
    body: FamilyMemberUpdate,
    portal: PortalSession = Depends(require_page),
):
    store = await portal.family()
    try:
        return await store.update(member_id, body)
    except BackendError as e:
        raise _http_error(e)


@router.delete("/family/{member_id}", status_code=204)
async def remove_family_member(
    member_id: uuid.UUID,
    portal: PortalSession = Depends(require_page),
):
    store = await portal.family()
    try:
        await store.delete(member_id)
    except BackendError as e:
        raise _http_error(e)


# ═══════════════════════════════════════════════════════════
# New request
# ═══════════════════════════════════════════════════════════


@router.get("/request")
async def request_page(portal: PortalSession = Depends(require_page)):
    services = await portal.services()
    family = await portal.family()
    beneficiaries = [{"id": None, "label": SELF_BENEFICIARY}] + [
        {"id": m.id, "label": f"{m.first_name} {m.last_name} ({m.relationship})"}
        for m in family.items
    ]
    return {
        "page": "member-request",
        "services": services.active(),
        "beneficiaries": beneficiaries,
        "error": services.error or family.error,
    }


@router.post("/request", response_model=ServiceRequestRead, status_code=201)
async def submit_request(
    body: ServiceRequestCreate,
    portal: PortalSession = Depends(require_page),
):
    services = await portal.services()
    service = services.find(body.service_id)
    if service is None or not service.is_active:
        raise HTTPException(status_code=400, detail="Unknown or inactive service")
    if body.amount > service.max_amount:
        raise HTTPException(
            status_code=400,
            detail=f"Amount exceeds the maximum of {service.max_amount}",
        )

    if body.beneficiary_id is not None:
        family = await portal.family()
        if family.find(body.beneficiary_id) is None:
            raise HTTPException(status_code=400, detail="Unknown beneficiary")

    store = await portal.my_requests()
    try:
        created = await store.create(body)
    except BackendError as e:
        raise _http_error(e)
    logger.info(
        "member.request_submitted",
        request_id=str(created.id),
        service=service.name,
    )
    return created


# ═══════════════════════════════════════════════════════════
# History
# ═══════════════════════════════════════════════════════════


@router.get("/history")
async def history(
    q: str = Query("", description="Search on service name or description"),
    status: str = Query(views.ALL),
    portal: PortalSession = Depends(require_page),
):
    store = await portal.my_requests()
    matched = views.filter_requests(store.items, q, status)
    return {
        "page": "member-history",
        "requests": matched,
        "counts": views.request_counts(matched),
        "totals": views.request_totals(matched),
        "error": store.error,
    }
