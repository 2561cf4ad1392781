"""Data-access stores — one per entity collection, over a shared cache."""

from musaib.stores.cache import CacheChange, CacheOp, CacheRegistry, CollectionCache
from musaib.stores.dashboard import DashboardStats, DashboardStatsStore
from musaib.stores.family import FamilyMemberStore
from musaib.stores.profiles import ProfileStore
from musaib.stores.requests import (
    VALID_TRANSITIONS,
    InvalidTransitionError,
    ServiceRequestStore,
)
from musaib.stores.services import ServiceStore

__all__ = [
    "CacheChange",
    "CacheOp",
    "CacheRegistry",
    "CollectionCache",
    "DashboardStats",
    "DashboardStatsStore",
    "FamilyMemberStore",
    "InvalidTransitionError",
    "ProfileStore",
    "ServiceRequestStore",
    "ServiceStore",
    "VALID_TRANSITIONS",
]
