"""Admin and member page tests — the whole portal over HTTP.

Learn: Tests cover:
1. Service catalog CRUD (admin) and what members see of it
2. Request submission checks (active service, max amount, own dependents)
3. Admin decisions through the state machine (409 on invalid moves)
4. Member directory: search, suspend, password reset mail
5. Family CRUD and self-service profile edits
6. Writes by one browser are visible to the others (shared cache)
"""

import uuid
from decimal import Decimal

import pytest

from conftest import MEMBER_EMAIL, create_user


def money(value) -> Decimal:
    """Amounts come back as JSON numbers or strings depending on the path."""
    return Decimal(str(value))


async def create_service(admin_client, name="Scolarité", max_amount="500.00", **extra):
    r = await admin_client.post("/admin/services", json={
        "name": name,
        "description": f"Aide {name}",
        "max_amount": max_amount,
        **extra,
    })
    assert r.status_code == 201, r.text
    return r.json()


async def submit_request(member_client, service_id, amount="120.00", **extra):
    return await member_client.post("/member/request", json={
        "service_id": service_id,
        "amount": amount,
        "description": "Frais",
        **extra,
    })


# ═══════════════════════════════════════════════════════════
# Services
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_service_crud(admin_client):
    service = await create_service(admin_client)
    assert service["is_active"] is True
    assert money(service["max_amount"]) == Decimal("500")

    r = await admin_client.patch(
        f"/admin/services/{service['id']}", json={"max_amount": "800.00"}
    )
    assert r.status_code == 200
    assert money(r.json()["max_amount"]) == Decimal("800")

    r = await admin_client.get("/admin/services")
    assert [s["name"] for s in r.json()["services"]] == ["Scolarité"]

    r = await admin_client.delete(f"/admin/services/{service['id']}")
    assert r.status_code == 204
    r = await admin_client.get("/admin/services")
    assert r.json()["services"] == []


@pytest.mark.asyncio
async def test_service_validation(admin_client):
    r = await admin_client.post("/admin/services", json={"name": "", "max_amount": "10"})
    assert r.status_code == 422
    r = await admin_client.post("/admin/services", json={"name": "X", "max_amount": "0"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_update_unknown_service(admin_client):
    r = await admin_client.patch(f"/admin/services/{uuid.uuid4()}", json={"name": "X"})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_member_sees_only_active_services(admin_client, member_client):
    await create_service(admin_client, "Santé")
    await create_service(admin_client, "Décès", is_active=False)

    r = await member_client.get("/member/request")
    assert r.status_code == 200
    body = r.json()
    assert [s["name"] for s in body["services"]] == ["Santé"]
    assert body["beneficiaries"] == [{"id": None, "label": "Moi-même"}]


# ═══════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_submit_request(admin_client, member_client, member_id):
    service = await create_service(admin_client)
    r = await submit_request(member_client, service["id"])
    assert r.status_code == 201, r.text
    request = r.json()
    assert request["status"] == "pending"
    assert request["user_id"] == str(member_id)
    assert request["service"]["name"] == "Scolarité"
    assert request["processed_at"] is None

    r = await member_client.get("/member/history")
    assert [x["id"] for x in r.json()["requests"]] == [request["id"]]


@pytest.mark.asyncio
async def test_submit_over_max_amount(admin_client, member_client):
    service = await create_service(admin_client, max_amount="100.00")
    r = await submit_request(member_client, service["id"], amount="100.01")
    assert r.status_code == 400
    r = await submit_request(member_client, service["id"], amount="100.00")
    assert r.status_code == 201


@pytest.mark.asyncio
async def test_submit_inactive_or_unknown_service(admin_client, member_client):
    service = await create_service(admin_client, is_active=False)
    r = await submit_request(member_client, service["id"])
    assert r.status_code == 400
    r = await submit_request(member_client, str(uuid.uuid4()))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_submit_for_someone_elses_dependent(
    admin_client, member_client, make_client, backend
):
    await create_user(backend, "other@musaib.tn")
    other = await make_client("other@musaib.tn")
    r = await other.post("/member/family", json={
        "first_name": "Yasmine", "last_name": "X",
        "national_id": "ID-9", "relationship": "spouse",
    })
    foreign = r.json()["id"]

    service = await create_service(admin_client)
    r = await submit_request(member_client, service["id"], beneficiary_id=foreign)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_submit_for_own_dependent(admin_client, member_client):
    r = await member_client.post("/member/family", json={
        "first_name": "Lina", "last_name": "Trabelsi",
        "national_id": "ID-1", "relationship": "child",
    })
    lina = r.json()

    r = await member_client.get("/member/request")
    assert r.json()["beneficiaries"][1] == {
        "id": lina["id"], "label": "Lina Trabelsi (child)",
    }

    service = await create_service(admin_client)
    r = await submit_request(member_client, service["id"], beneficiary_id=lina["id"])
    assert r.status_code == 201
    assert r.json()["beneficiary"]["first_name"] == "Lina"


@pytest.mark.asyncio
async def test_admin_decides_request(admin_client, member_client):
    service = await create_service(admin_client)

    # Admin page opened before the member writes
    r = await admin_client.get("/admin/requests")
    assert r.json()["requests"] == []

    request = (await submit_request(member_client, service["id"])).json()

    r = await admin_client.get("/admin/requests")
    body = r.json()
    assert [x["id"] for x in body["requests"]] == [request["id"]]
    assert body["counts"] == {"pending": 1, "approved": 0, "rejected": 0}

    r = await admin_client.patch(f"/admin/requests/{request['id']}", json={
        "status": "approved", "admin_comments": "Dossier complet",
    })
    assert r.status_code == 200
    decided = r.json()
    assert decided["status"] == "approved"
    assert decided["processed_at"] is not None
    assert decided["admin_comments"] == "Dossier complet"

    r = await admin_client.patch(f"/admin/requests/{request['id']}", json={"status": "pending"})
    assert r.status_code == 409

    r = await member_client.get("/member/history")
    history = r.json()
    assert history["requests"][0]["status"] == "approved"
    assert money(history["totals"]["approved_amount"]) == Decimal("120")


@pytest.mark.asyncio
async def test_decide_unknown_request(admin_client):
    r = await admin_client.patch(f"/admin/requests/{uuid.uuid4()}", json={"status": "approved"})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_decide_with_bad_status(admin_client):
    r = await admin_client.patch(f"/admin/requests/{uuid.uuid4()}", json={"status": "done"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_request_search(admin_client, member_client):
    sante = await create_service(admin_client, "Santé")
    ecole = await create_service(admin_client, "Scolarité")
    await submit_request(member_client, sante["id"])
    await submit_request(member_client, ecole["id"])

    r = await admin_client.get("/admin/requests", params={"q": "santé"})
    assert [x["service"]["name"] for x in r.json()["requests"]] == ["Santé"]

    r = await admin_client.get("/admin/requests", params={"q": "trabelsi"})
    assert len(r.json()["requests"]) == 2

    r = await member_client.get("/member/history", params={"status": "approved"})
    assert r.json()["requests"] == []


# ═══════════════════════════════════════════════════════════
# Dashboards
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_admin_dashboard(admin_client, member_client):
    service = await create_service(admin_client)
    await submit_request(member_client, service["id"])

    r = await admin_client.get("/admin")
    assert r.status_code == 200
    body = r.json()
    assert body["stats"] == {
        "total_members": 1,
        "pending_requests": 1,
        "processed_requests": 0,
        "monthly_requests": 1,
    }
    assert body["service_distribution"] == {"Scolarité": 1}
    assert body["recent_activity"][0]["kind"] == "new"
    assert body["recent_activity"][0]["member"] == "Sami Trabelsi"


@pytest.mark.asyncio
async def test_member_dashboard(admin_client, member_client):
    service = await create_service(admin_client)
    await submit_request(member_client, service["id"])
    await member_client.post("/member/family", json={
        "first_name": "Lina", "last_name": "T", "national_id": "ID-1",
        "relationship": "child",
    })

    r = await member_client.get("/member")
    body = r.json()
    assert body["stats"] == {
        "submitted_requests": 1,
        "pending_requests": 1,
        "approved_requests": 0,
        "family_members": 1,
    }
    assert len(body["recent_requests"]) == 1
    assert body["user"]["email"] == MEMBER_EMAIL


# ═══════════════════════════════════════════════════════════
# Members (admin)
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_member_directory(admin_client, member_id, backend):
    await create_user(backend, "nour@musaib.tn", first_name="Nour", last_name="Ben Salah")

    r = await admin_client.get("/admin/users")
    body = r.json()
    assert len(body["members"]) == 2
    assert body["counts"] == {"total": 2, "active": 2, "suspended": 0}

    r = await admin_client.get("/admin/users", params={"q": "NIP-001"})
    assert [m["id"] for m in r.json()["members"]] == [str(member_id)]


@pytest.mark.asyncio
async def test_suspend_member(admin_client, member_id):
    r = await admin_client.patch(f"/admin/users/{member_id}", json={"status": "suspended"})
    assert r.status_code == 200
    assert r.json()["status"] == "suspended"

    r = await admin_client.get("/admin/users", params={"status": "suspended"})
    assert [m["id"] for m in r.json()["members"]] == [str(member_id)]

    r = await admin_client.patch(f"/admin/users/{member_id}", json={"status": "gone"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_admin_sends_password_reset(admin_client, member_id, mailer):
    r = await admin_client.post(f"/admin/users/{member_id}/password-reset")
    assert r.status_code == 200
    assert r.json()["email"] == MEMBER_EMAIL
    assert mailer.sent[-1][0] == MEMBER_EMAIL


@pytest.mark.asyncio
async def test_password_reset_unknown_member(admin_client):
    r = await admin_client.post(f"/admin/users/{uuid.uuid4()}/password-reset")
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Family + profile (member)
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_family_crud(member_client):
    r = await member_client.post("/member/family", json={
        "first_name": "Adam", "last_name": "Trabelsi",
        "national_id": "ID-2", "relationship": "child",
    })
    assert r.status_code == 201
    adam = r.json()

    r = await member_client.patch(f"/member/family/{adam['id']}", json={"first_name": "Adem"})
    assert r.status_code == 200
    assert r.json()["first_name"] == "Adem"

    r = await member_client.get("/member/family")
    assert [m["first_name"] for m in r.json()["family"]] == ["Adem"]

    r = await member_client.delete(f"/member/family/{adam['id']}")
    assert r.status_code == 204
    r = await member_client.get("/member/family")
    assert r.json()["family"] == []


@pytest.mark.asyncio
async def test_family_of_another_member_is_not_found(member_client, make_client, backend):
    await create_user(backend, "other@musaib.tn")
    other = await make_client("other@musaib.tn")
    r = await other.post("/member/family", json={
        "first_name": "Yasmine", "last_name": "X",
        "national_id": "ID-9", "relationship": "spouse",
    })
    foreign = r.json()["id"]

    r = await member_client.delete(f"/member/family/{foreign}")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_member_profile_edit(member_client):
    r = await member_client.patch("/member/profile", json={"phone": "+216 22 333 444"})
    assert r.status_code == 200
    assert r.json()["user"]["profile"]["phone"] == "+216 22 333 444"

    r = await member_client.get("/member/profile")
    assert r.json()["user"]["profile"]["phone"] == "+216 22 333 444"


@pytest.mark.asyncio
async def test_member_cannot_promote_self(member_client):
    r = await member_client.patch("/member/profile", json={"role": "admin"})
    assert r.status_code == 400

    r = await member_client.get("/member")
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_member_cannot_reset_first_login_flag(member_client, backend, member_id):
    r = await member_client.patch("/member/profile", json={"first_login": True})
    assert r.status_code == 400

    profile = await backend.profiles.get(member_id)
    assert profile.first_login is False
    r = await member_client.get("/member")
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_profile_edit_reaches_member_directory(
    admin_client, member_client, member_id
):
    r = await admin_client.get("/admin/users")
    assert r.json()["members"][0]["first_name"] == "Sami"

    await member_client.patch("/member/profile", json={"first_name": "Samir"})

    r = await admin_client.get("/admin/users")
    assert r.json()["members"][0]["first_name"] == "Samir"


@pytest.mark.asyncio
async def test_admin_profile(admin_client):
    r = await admin_client.patch("/admin/profile", json={"address": "Tunis"})
    assert r.status_code == 200
    r = await admin_client.get("/admin/profile")
    assert r.json()["user"]["profile"]["address"] == "Tunis"
