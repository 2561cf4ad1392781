"""Admin area — dashboard, members, requests, services, own profile.

Learn: every handler gets the browser's PortalSession through
require_page, so the guard has already run. Lists come from the shared
stores; mutations go through the stores too, so the other open pages see
them. Errors map the same way everywhere:

    RowNotFound             → 404
    InvalidTransitionError  → 409
    BackendError / AuthError→ 400
"""

import uuid
from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query

from musaib.backend.auth_provider import AuthError
from musaib.backend.rows import BackendError, RowNotFound
from musaib.portal import views
from musaib.portal.dependencies import require_page
from musaib.portal.runtime import PortalSession
from musaib.schemas.profile import ProfileRead, ProfileStatusUpdate
from musaib.schemas.request import ServiceRequestRead, StatusChange
from musaib.schemas.service import ServiceCreate, ServiceRead, ServiceUpdate
from musaib.stores.dashboard import DashboardStatsStore
from musaib.stores.requests import InvalidTransitionError

logger = structlog.get_logger()
router = APIRouter(prefix="/admin")


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, RowNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ═══════════════════════════════════════════════════════════
# Dashboard
# ═══════════════════════════════════════════════════════════


@router.get("")
async def dashboard(portal: PortalSession = Depends(require_page)):
    stats_store = DashboardStatsStore(portal.backend)
    stats = await stats_store.fetch()

    requests = await portal.all_requests()
    return {
        "page": "admin-dashboard",
        "stats": stats,
        "error": stats_store.error or requests.error,
        "service_distribution": views.service_distribution(requests.items),
        "recent_activity": views.recent_activity(requests.items),
    }


# ═══════════════════════════════════════════════════════════
# Members
# ═══════════════════════════════════════════════════════════


@router.get("/users")
async def users(
    q: str = Query("", description="Search on name or nip"),
    status: str = Query(views.ALL),
    portal: PortalSession = Depends(require_page),
):
    store = await portal.profiles()
    members = views.filter_members(store.items, q, status)
    return {
        "page": "admin-users",
        "members": members,
        "counts": views.member_counts(members),
        "error": store.error,
    }


@router.patch("/users/{profile_id}", response_model=ProfileRead)
async def set_user_status(
    profile_id: uuid.UUID,
    body: ProfileStatusUpdate,
    portal: PortalSession = Depends(require_page),
):
    """Suspend or reactivate a member."""
    store = await portal.profiles()
    try:
        profile = await store.set_status(profile_id, body.status)
    except BackendError as e:
        raise _http_error(e)
    logger.info("admin.member_status", profile_id=str(profile_id), status=body.status)
    return profile


@router.post("/users/{profile_id}/password-reset")
async def reset_user_password(
    profile_id: uuid.UUID,
    portal: PortalSession = Depends(require_page),
):
    """Mail a password-reset link to a member."""
    try:
        email = await portal.backend.auth.get_user_email(profile_id)
    except AuthError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if not await portal.auth.reset_password(email):
        raise HTTPException(status_code=400, detail="Reset mail could not be sent")
    return {"sent": True, "email": email}


# ═══════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════


@router.get("/requests")
async def requests_page(
    q: str = Query("", description="Search on member or service name"),
    status: str = Query(views.ALL),
    portal: PortalSession = Depends(require_page),
):
    store = await portal.all_requests()
    return {
        "page": "admin-requests",
        "requests": views.filter_requests(store.items, q, status),
        "counts": views.request_counts(store.items),
        "error": store.error,
    }


@router.patch("/requests/{request_id}", response_model=ServiceRequestRead)
async def decide_request(
    request_id: uuid.UUID,
    body: StatusChange,
    portal: PortalSession = Depends(require_page),
):
    """Approve or reject a pending request."""
    store = await portal.all_requests()
    try:
        updated = await store.update_status(
            request_id, body.status, body.admin_comments
        )
    except (BackendError, InvalidTransitionError) as e:
        raise _http_error(e)
    logger.info("admin.request_decided", request_id=str(request_id), status=body.status)
    return updated


# ═══════════════════════════════════════════════════════════
# Services
# ═══════════════════════════════════════════════════════════


@router.get("/services")
async def services_page(portal: PortalSession = Depends(require_page)):
    store = await portal.services()
    return {"page": "admin-services", "services": store.items, "error": store.error}


@router.post("/services", response_model=ServiceRead, status_code=201)
async def create_service(
    body: ServiceCreate,
    portal: PortalSession = Depends(require_page),
):
    store = await portal.services()
    try:
        return await store.create(body)
    except BackendError as e:
        raise _http_error(e)


@router.patch("/services/{service_id}", response_model=ServiceRead)
async def update_service(
    service_id: uuid.UUID,
    body: ServiceUpdate,
    portal: PortalSession = Depends(require_page),
):
    store = await portal.services()
    try:
        return await store.update(service_id, body)
    except BackendError as e:
        raise _http_error(e)


@router.delete("/services/{service_id}", status_code=204)
async def delete_service(
    service_id: uuid.UUID,
    portal: PortalSession = Depends(require_page),
):
    store = await portal.services()
    try:
        await store.delete(service_id)
    except BackendError as e:
        raise _http_error(e)


# ═══════════════════════════════════════════════════════════
# Own profile
# ═══════════════════════════════════════════════════════════


@router.get("/profile")
async def profile_page(portal: PortalSession = Depends(require_page)):
    return {"page": "admin-profile", "user": portal.auth.current_user}


@router.patch("/profile")
async def update_profile(
    updates: dict[str, Any] = Body(...),
    portal: PortalSession = Depends(require_page),
):
    if not await portal.update_profile(updates):
        raise HTTPException(status_code=400, detail="Profile could not be updated")
    return {"user": portal.auth.current_user}
