"""View-model helpers — the filters and totals the pages compute.

Everything here is a plain function over store contents: search, status
filters, per-status counts, amount totals, dashboard breakdowns. No I/O.
"""

from collections import Counter
from decimal import Decimal
from typing import Iterable, Optional

from musaib.schemas.profile import ProfileRead
from musaib.schemas.request import ServiceRequestRead

ALL = "all"
OTHER_SERVICE = "Autres"


def _matches(term: str, *fields: Optional[str]) -> bool:
    term = term.strip().lower()
    if not term:
        return True
    return any(term in (f or "").lower() for f in fields)


# ─── Members (admin/users) ──────────────────────────────


def filter_members(
    profiles: Iterable[ProfileRead], search: str = "", status: str = ALL
) -> list[ProfileRead]:
    """Members only, matched on full name or nip, optionally by status."""
    return [
        p
        for p in profiles
        if p.role == "member"
        and _matches(search, p.full_name, p.nip)
        and (status == ALL or p.status == status)
    ]


def member_counts(profiles: Iterable[ProfileRead]) -> dict[str, int]:
    profiles = list(profiles)
    return {
        "total": len(profiles),
        "active": sum(1 for p in profiles if p.status == "active"),
        "suspended": sum(1 for p in profiles if p.status == "suspended"),
    }


# ─── Requests ───────────────────────────────────────────


def member_name(request: ServiceRequestRead) -> str:
    return request.user.full_name if request.user else ""


def service_name(request: ServiceRequestRead) -> str:
    return request.service.name if request.service else ""


def filter_requests(
    requests: Iterable[ServiceRequestRead], search: str = "", status: str = ALL
) -> list[ServiceRequestRead]:
    """Matched on member name, service name or description."""
    return [
        r
        for r in requests
        if _matches(search, member_name(r), service_name(r), r.description)
        and (status == ALL or r.status == status)
    ]


def request_counts(requests: Iterable[ServiceRequestRead]) -> dict[str, int]:
    counts = Counter(r.status for r in requests)
    return {
        "pending": counts.get("pending", 0),
        "approved": counts.get("approved", 0),
        "rejected": counts.get("rejected", 0),
    }


def request_totals(requests: Iterable[ServiceRequestRead]) -> dict[str, Decimal]:
    """Total requested amount and the approved part of it."""
    requests = list(requests)
    return {
        "total_amount": sum((r.amount for r in requests), Decimal("0")),
        "approved_amount": sum(
            (r.amount for r in requests if r.status == "approved"), Decimal("0")
        ),
    }


# ─── Admin dashboard ────────────────────────────────────


def service_distribution(requests: Iterable[ServiceRequestRead]) -> dict[str, int]:
    """Request count per service name; requests without a service count as "Autres"."""
    return dict(Counter(service_name(r) or OTHER_SERVICE for r in requests))


def recent_activity(
    requests: Iterable[ServiceRequestRead], limit: int = 4
) -> list[dict]:
    kinds = {"pending": "new", "approved": "success"}
    activity = []
    for r in list(requests)[:limit]:
        activity.append({
            "request_id": r.id,
            "member": member_name(r),
            "service": service_name(r),
            "submitted_at": r.submitted_at,
            "kind": kinds.get(r.status, "info"),
        })
    return activity
