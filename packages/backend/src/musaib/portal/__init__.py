"""Portal — the pages of the MuSAIB portal.

Learn: portal_router is what main.py mounts. The public pages come
first; the admin and member areas each guard every handler with their
role dependency.
"""

from fastapi import APIRouter

from musaib.portal.pages.admin import router as admin_router
from musaib.portal.pages.auth import router as auth_router
from musaib.portal.pages.member import router as member_router

portal_router = APIRouter()

portal_router.include_router(auth_router, tags=["auth"])
portal_router.include_router(admin_router, tags=["admin"])
portal_router.include_router(member_router, tags=["member"])
