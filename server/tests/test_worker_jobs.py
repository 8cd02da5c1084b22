"""Tests for the scheduled reminder jobs."""

from datetime import date, timedelta

import pytest
from conftest import make_user
from servicedesk.models.base import utcnow
from servicedesk.models.notification import Notification, NotificationType
from servicedesk.models.point import Point, PointPriority, PointStatus
from servicedesk.models.service_record import ServiceRecordStatus
from servicedesk.models.user import UserRole
from sqlalchemy import select

from worker.jobs.open_points_job import open_points_reminder_job, run_open_points_reminder
from worker.jobs.warranty_job import run_warranty_expiry_alerts


async def inbox(db, user_id):
    result = await db.execute(select(Notification).where(Notification.user_id == user_id).order_by(Notification.id))
    return result.scalars().all()


async def add_point(db, record, creator, **fields):
    title = fields.pop("title", "Align tailstock")
    point = Point(service_record_id=record.id, title=title, created_by_id=creator.id, **fields)
    db.add(point)
    await db.commit()
    return point


class TestOpenPointsReminder:
    @pytest.mark.asyncio
    async def test_no_open_points_sends_nothing(self, db_session, dispatcher, admin, engineer, test_service_record):
        await add_point(db_session, test_service_record, engineer, status=PointStatus.CLOSED)

        summary = await run_open_points_reminder(db_session, dispatcher)

        assert summary == {"open_points": 0, "admin_summaries": 0, "assignee_summaries": 0, "overdue_alerts": 0}
        assert await inbox(db_session, admin.id) == []

    @pytest.mark.asyncio
    async def test_admin_and_assignee_summaries(
        self, db_session, dispatcher, admin, engineer, other_engineer, test_service_record
    ):
        now = utcnow()
        await make_user(db_session, UserRole.ADMIN, "Inactive Admin", is_active=False)
        await add_point(db_session, test_service_record, admin, priority=PointPriority.HIGH, assigned_to_id=engineer.id)
        overdue = await add_point(
            db_session,
            test_service_record,
            admin,
            title="Replace way covers",
            priority=PointPriority.LOW,
            assigned_to_id=engineer.id,
            due_date=now - timedelta(days=2),
        )
        await add_point(
            db_session, test_service_record, admin, assigned_to_id=other_engineer.id, status=PointStatus.IN_PROGRESS
        )
        await add_point(db_session, test_service_record, admin)
        await add_point(
            db_session, test_service_record, admin, assigned_to_id=other_engineer.id, status=PointStatus.COMPLETED
        )

        summary = await run_open_points_reminder(db_session, dispatcher, now=now)

        assert summary == {"open_points": 4, "admin_summaries": 1, "assignee_summaries": 2, "overdue_alerts": 1}

        [admin_summary] = await inbox(db_session, admin.id)
        assert admin_summary.title == "📊 Open Points Summary - 4 Total"
        assert admin_summary.message == "HIGH: 1 | MEDIUM: 2 | LOW: 1 | Overdue: 1 | Unassigned: 1"
        assert admin_summary.type == NotificationType.WARNING
        assert admin_summary.meta["source"] == "openPointsScript"

        engineer_summary, overdue_alert = await inbox(db_session, engineer.id)
        assert engineer_summary.title == "⚠️ You have 2 open points"
        assert engineer_summary.message == "HIGH: 1 | MEDIUM: 0 | LOW: 1 | ⏰ OVERDUE: 1"
        assert engineer_summary.type == NotificationType.URGENT
        assert overdue_alert.title == "🚨 Overdue Point: Replace way covers"
        assert overdue_alert.type == NotificationType.URGENT
        assert overdue_alert.service_record_id == test_service_record.id
        assert overdue_alert.meta["pointId"] == overdue.id
        assert "Customer: Precision Tools Pvt Ltd | Machine: VMC 850" in overdue_alert.message

        [other_summary] = await inbox(db_session, other_engineer.id)
        assert other_summary.title == "⚠️ You have 1 open point"
        assert other_summary.type == NotificationType.WARNING

    @pytest.mark.asyncio
    async def test_inactive_assignee_skipped(self, db_session, dispatcher, engineer, test_service_record):
        retired = await make_user(db_session, UserRole.ENGINEER, "Retired", is_active=False)
        await add_point(db_session, test_service_record, engineer, assigned_to_id=retired.id)

        summary = await run_open_points_reminder(db_session, dispatcher)

        assert summary["assignee_summaries"] == 0
        assert await inbox(db_session, retired.id) == []

    @pytest.mark.asyncio
    async def test_reruns_are_not_deduplicated(self, db_session, dispatcher, admin, engineer, test_service_record):
        await add_point(db_session, test_service_record, engineer)

        await run_open_points_reminder(db_session, dispatcher)
        await run_open_points_reminder(db_session, dispatcher)

        assert len(await inbox(db_session, admin.id)) == 2

    @pytest.mark.asyncio
    async def test_job_entry_point_logs_failures(self, dispatcher, caplog):
        def broken_session_maker():
            raise RuntimeError("database unavailable")

        await open_points_reminder_job(broken_session_maker, dispatcher)

        assert "Error in open points reminder job" in caplog.text


class TestWarrantyExpiryAlerts:
    @pytest.mark.asyncio
    async def test_alerts_records_inside_window(
        self, db_session, dispatcher, admin, service_head, sales, commercial, test_service_record
    ):
        alerted = await run_warranty_expiry_alerts(db_session, dispatcher, 30, today=date(2026, 1, 1))

        assert alerted == 1
        for user in (admin, service_head, sales):
            [notification] = await inbox(db_session, user.id)
            assert notification.title == "Warranty Expiring Soon"
            assert notification.type == NotificationType.WARNING
            assert "2026-01-15" in notification.message
        assert await inbox(db_session, commercial.id) == []

    @pytest.mark.asyncio
    async def test_skips_inactive_records_and_outside_window(self, db_session, dispatcher, admin, test_service_record):
        assert await run_warranty_expiry_alerts(db_session, dispatcher, 30, today=date(2025, 10, 1)) == 0

        test_service_record.status = ServiceRecordStatus.CANCELLED
        await db_session.commit()
        assert await run_warranty_expiry_alerts(db_session, dispatcher, 30, today=date(2026, 1, 1)) == 0
