"""HTTP API tests: authentication, error rendering and the main workflows."""

import pytest
from conftest import auth
from httpx import AsyncClient
from servicedesk.models.notification import Notification
from sqlalchemy import select


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_header(self, client: AsyncClient):
        response = await client.get("/api/users/me")

        assert response.status_code == 401
        assert response.json() == {"error": "unauthenticated", "message": "Authorization header missing"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", ["Bearer", "Bearer abc", "Token 1", "Bearer 9999"])
    async def test_bad_credentials(self, client: AsyncClient, admin, header):
        response = await client.get("/api/users/me", headers={"Authorization": header})

        assert response.status_code == 401
        assert response.json()["error"] == "unauthenticated"

    @pytest.mark.asyncio
    async def test_inactive_user_rejected(self, client: AsyncClient, db_session, sales):
        sales.is_active = False
        await db_session.commit()

        response = await client.get("/api/users/me", headers=auth(sales))

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, engineer):
        response = await client.get("/api/users/me", headers=auth(engineer))

        assert response.status_code == 200
        assert response.json()["user"]["role"] == "ENGINEER"


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_db_health(self, client: AsyncClient):
        response = await client.get("/api/health/db")

        assert response.json() == {"status": "healthy", "database": "connected"}


class TestErrorRendering:
    @pytest.mark.asyncio
    async def test_permission_denied_shape(self, client: AsyncClient, engineer):
        response = await client.post(
            "/api/users", json={"name": "New", "phone": "1234567890", "role": "SALES"}, headers=auth(engineer)
        )

        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    @pytest.mark.asyncio
    async def test_not_found_shape(self, client: AsyncClient, admin):
        response = await client.get("/api/customers/9999", headers=auth(admin))

        assert response.status_code == 404
        assert response.json() == {"error": "not_found", "message": "Customer with ID 9999 not found"}

    @pytest.mark.asyncio
    async def test_invalid_vocabulary_lists_valid_values(self, client: AsyncClient, admin):
        response = await client.post(
            "/api/users", json={"name": "New", "phone": "1234567890", "role": "MANAGER"}, headers=auth(admin)
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "invalid_argument"
        assert body["field"] == "role"
        assert "SERVICE_HEAD" in body["valid_values"]


class TestServiceRecordWorkflow:
    @pytest.mark.asyncio
    async def test_create_and_read_back(
        self, client: AsyncClient, db_session, engineer, admin, test_customer, test_machine
    ):
        response = await client.post(
            "/api/service-records",
            json={
                "customer_id": test_customer.id,
                "machine_id": test_machine.id,
                "purchase_date": "2024-01-15",
                "pending_amount": 5000,
            },
            headers=auth(engineer),
        )

        assert response.status_code == 201
        record = response.json()["service_record"]
        assert record["warranty_expires_at"] == "2026-01-15"
        assert record["has_pending_amount"] is True

        titles = (await db_session.execute(select(Notification.title).order_by(Notification.id))).scalars().all()
        assert titles == ["New Installation Completed", "Pending Payment Alert"]

        response = await client.get(f"/api/service-records/{record['id']}", headers=auth(admin))
        assert response.status_code == 200
        assert response.json()["service_record"]["open_points_count"] == 0

        response = await client.get(f"/api/customers/{test_customer.id}", headers=auth(admin))
        assert [r["id"] for r in response.json()["customer"]["service_records"]] == [record["id"]]

    @pytest.mark.asyncio
    async def test_blocked_delete_reports_counts(
        self, client: AsyncClient, service_head, engineer, test_service_record
    ):
        response = await client.post(
            "/api/points",
            json={"service_record_id": test_service_record.id, "title": "Tighten gib", "assigned_to_id": engineer.id},
            headers=auth(service_head),
        )
        assert response.status_code == 201

        response = await client.delete(f"/api/service-records/{test_service_record.id}", headers=auth(service_head))

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_state"
        assert response.json()["points"] == 1


class TestPointsApi:
    @pytest.mark.asyncio
    async def test_my_points_and_escalation(self, client: AsyncClient, service_head, engineer, test_service_record):
        for title in ("One", "Two"):
            await client.post(
                "/api/points",
                json={"service_record_id": test_service_record.id, "title": title, "assigned_to_id": engineer.id},
                headers=auth(service_head),
            )

        response = await client.get("/api/points/my-points?status=OPEN", headers=auth(engineer))
        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 2

        # Brand-new points are inside the default time frame
        response = await client.post(f"/api/points/escalation/{test_service_record.id}", headers=auth(service_head))
        assert response.json()["escalation_required"] is False

        response = await client.post(
            f"/api/points/escalation/{test_service_record.id}?timeFrameHours=0", headers=auth(service_head)
        )
        body = response.json()
        assert body["escalation_required"] is True
        assert body["open_points_count"] == 2
        assert body["time_frame_hours"] == 0


class TestNotificationsApi:
    @pytest.mark.asyncio
    async def test_inbox_flow(self, client: AsyncClient, dispatcher, db_session, admin, sales):
        mine = await dispatcher.notify_user(db_session, sales.id, "Quote ready", "Review quotation")
        theirs = await dispatcher.notify_user(db_session, admin.id, "Admin only", "M")

        response = await client.get("/api/notifications", headers=auth(sales))
        body = response.json()
        assert body["unread_count"] == 1
        assert [n["title"] for n in body["notifications"]] == ["Quote ready"]
        assert "sentAt" in body["notifications"][0]["metadata"]

        response = await client.put(f"/api/notifications/{theirs.id}/read", headers=auth(sales))
        assert response.status_code == 200
        assert response.json()["updated_count"] == 0

        response = await client.put(f"/api/notifications/{mine.id}/read", headers=auth(sales))
        assert response.json()["updated_count"] == 1

        response = await client.get("/api/notifications/unread-count", headers=auth(sales))
        assert response.json()["unread_count"] == 0

    @pytest.mark.asyncio
    async def test_send_requires_audience(self, client: AsyncClient, admin):
        response = await client.post(
            "/api/notifications/send", json={"title": "T", "message": "M"}, headers=auth(admin)
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_purge_is_admin_only(self, client: AsyncClient, sales, admin):
        response = await client.delete("/api/notifications/old/30", headers=auth(sales))
        assert response.status_code == 403

        response = await client.delete("/api/notifications/old/30", headers=auth(admin))
        assert response.status_code == 200
        assert response.json()["deleted_count"] == 0


class TestSparesQuotationsApi:
    @pytest.mark.asyncio
    async def test_create_approve_and_statistics(self, client: AsyncClient, engineer, sales):
        response = await client.post(
            "/api/spares-quotations",
            json={
                "customer_name": "Precision Tools",
                "machine_info": "VMC 850 / HS-850-0001",
                "part_details": [{"part": "Spindle bearing", "qty": 2}],
            },
            headers=auth(engineer),
        )
        assert response.status_code == 201
        quotation_id = response.json()["quotation"]["id"]

        response = await client.put(
            f"/api/spares-quotations/{quotation_id}/approve", json={"quotation_amount": 48000}, headers=auth(engineer)
        )
        assert response.status_code == 403

        response = await client.put(
            f"/api/spares-quotations/{quotation_id}/approve", json={"quotation_amount": 48000}, headers=auth(sales)
        )
        assert response.status_code == 200
        assert response.json()["quotation"]["status"] == "APPROVED"

        response = await client.get("/api/spares-quotations/statistics", headers=auth(sales))
        stats = response.json()["statistics"]
        assert stats["approved_quotations"] == 1
        assert stats["total_quotation_value"] == 48000.0
