"""Admin dashboard counters."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog

from musaib.backend import Backend, BackendError
from musaib.db.models import Profile, ServiceRequest

logger = structlog.get_logger()


@dataclass
class DashboardStats:
    total_members: int = 0
    pending_requests: int = 0
    processed_requests: int = 0
    monthly_requests: int = 0


def month_start(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


@dataclass
class DashboardStatsStore:
    """Head-only counts. Not cached — the dashboard always asks fresh."""

    backend: Backend
    stats: Optional[DashboardStats] = None
    error: Optional[str] = None
    loading: bool = field(default=False)

    async def fetch(self) -> Optional[DashboardStats]:
        profiles = self.backend.profiles
        requests = self.backend.service_requests
        self.loading = True
        try:
            self.stats = DashboardStats(
                total_members=await profiles.count(Profile.role == "member"),
                pending_requests=await requests.count(ServiceRequest.status == "pending"),
                processed_requests=await requests.count(ServiceRequest.status != "pending"),
                monthly_requests=await requests.count(
                    ServiceRequest.submitted_at >= month_start()
                ),
            )
            self.error = None
        except BackendError as e:
            logger.warning("dashboard.fetch_failed", error=str(e))
            self.error = str(e)
        finally:
            self.loading = False
        return self.stats
