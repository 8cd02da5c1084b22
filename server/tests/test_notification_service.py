"""Tests for the notification dispatcher and inbox operations."""

from datetime import timedelta

import pytest
from conftest import FakePushSender, make_user
from servicedesk.errors import InvalidArgument, NotFound, PermissionDenied
from servicedesk.models.base import utcnow
from servicedesk.models.notification import Notification, NotificationType
from servicedesk.models.user import UserRole
from servicedesk.services import notification_service
from servicedesk.services.notification_service import NotificationDispatcher, best_effort
from sqlalchemy import func, select


async def count_notifications(db, **filters) -> int:
    stmt = select(func.count(Notification.id))
    for key, value in filters.items():
        stmt = stmt.where(getattr(Notification, key) == value)
    return await db.scalar(stmt)


class TestNotifyByRole:
    @pytest.mark.asyncio
    async def test_empty_audience_creates_nothing(self, db_session, dispatcher, admin):
        result = await dispatcher.notify_by_role(db_session, {UserRole.COMMERCIAL}, "Title", "Body")

        assert result == []
        assert await count_notifications(db_session) == 0

    @pytest.mark.asyncio
    async def test_one_notification_per_active_user(self, db_session, dispatcher, push_sender, admin, sales):
        await make_user(db_session, UserRole.SALES, "Retired Sales", is_active=False)

        result = await dispatcher.notify_by_role(
            db_session, {UserRole.ADMIN, UserRole.SALES}, "Heads up", "Body", type=NotificationType.WARNING
        )

        assert sorted(n.user_id for n in result) == sorted([admin.id, sales.id])
        assert all(n.type == NotificationType.WARNING for n in result)
        assert result[0].meta["targetRoles"] == ["ADMIN", "SALES"]
        assert "sentAt" in result[0].meta
        # Only the admin has a push token
        assert [sent["token"] for sent in push_sender.sent] == ["tok-admin"]

    @pytest.mark.asyncio
    async def test_push_failure_does_not_stop_fan_out(self, db_session, admin, service_head):
        dispatcher = NotificationDispatcher(FakePushSender(fail=True))

        result = await dispatcher.notify_by_role(db_session, {UserRole.ADMIN, UserRole.SERVICE_HEAD}, "T", "M")

        assert len(result) == 2
        assert await count_notifications(db_session) == 2

    @pytest.mark.asyncio
    async def test_push_payload(self, db_session, dispatcher, push_sender, admin, test_service_record):
        notification = await dispatcher.notify_user(
            db_session, admin.id, "Title", "Body", test_service_record.id, NotificationType.URGENT
        )

        sent = push_sender.sent[0]
        assert sent["title"] == "Title"
        assert sent["body"] == "Body"
        assert sent["data"] == {
            "notificationId": notification.id,
            "serviceRecordId": test_service_record.id,
            "type": "URGENT",
        }


class TestWorkflowNotifications:
    @pytest.mark.asyncio
    async def test_pending_payment_skipped_when_nothing_owed(
        self, db_session, dispatcher, admin, test_customer, test_service_record
    ):
        result = await dispatcher.send_pending_payment_notification(db_session, test_service_record, test_customer)

        assert result == []
        assert await count_notifications(db_session) == 0

    @pytest.mark.asyncio
    async def test_pending_payment_audience(
        self, db_session, dispatcher, admin, service_head, sales, commercial, test_customer, test_service_record
    ):
        test_service_record.pending_amount = 15000.0
        await db_session.commit()

        result = await dispatcher.send_pending_payment_notification(db_session, test_service_record, test_customer)

        assert sorted(n.user_id for n in result) == sorted([admin.id, sales.id, commercial.id])
        assert result[0].message == f"Pending payment of ₹15000 for Customer: {test_customer.name}"
        assert result[0].type == NotificationType.WARNING

    @pytest.mark.asyncio
    async def test_escalation_goes_to_service_heads_only(
        self, db_session, dispatcher, admin, service_head, test_customer, test_service_record
    ):
        result = await dispatcher.send_escalation_notification(db_session, test_service_record, test_customer, [1, 2])

        assert [n.user_id for n in result] == [service_head.id]
        assert result[0].type == NotificationType.URGENT
        assert "2 open points remaining" in result[0].message


class TestReadState:
    @pytest.mark.asyncio
    async def test_mark_read_of_another_users_notification_is_noop(self, db_session, dispatcher, admin, sales):
        notification = await dispatcher.notify_user(db_session, admin.id, "T", "M")

        assert await dispatcher.mark_read(db_session, notification.id, sales.id) == 0
        await db_session.refresh(notification)
        assert notification.is_read is False

        assert await dispatcher.mark_read(db_session, notification.id, admin.id) == 1
        await db_session.refresh(notification)
        assert notification.is_read is True

    @pytest.mark.asyncio
    async def test_mark_all_read(self, db_session, dispatcher, admin, sales):
        for _ in range(3):
            await dispatcher.notify_user(db_session, admin.id, "T", "M")
        await dispatcher.notify_user(db_session, sales.id, "T", "M")

        assert await dispatcher.mark_all_read(db_session, admin.id) == 3
        assert await notification_service.unread_count(db_session, admin.id) == 0
        assert await notification_service.unread_count(db_session, sales.id) == 1

    @pytest.mark.asyncio
    async def test_purge_old_keeps_unread_and_recent(self, db_session, dispatcher, admin):
        old_read = await dispatcher.notify_user(db_session, admin.id, "old read", "M")
        old_unread = await dispatcher.notify_user(db_session, admin.id, "old unread", "M")
        recent_read = await dispatcher.notify_user(db_session, admin.id, "recent read", "M")

        old_read.created_at = utcnow() - timedelta(days=45)
        old_read.is_read = True
        old_unread.created_at = utcnow() - timedelta(days=45)
        recent_read.is_read = True
        await db_session.commit()

        assert await dispatcher.purge_old(db_session, 30) == 1
        remaining = (await db_session.execute(select(Notification.title).order_by(Notification.id))).scalars().all()
        assert remaining == ["old unread", "recent read"]


class TestInbox:
    @pytest.mark.asyncio
    async def test_list_is_scoped_and_reports_unread(self, db_session, dispatcher, admin, sales):
        first = await dispatcher.notify_user(db_session, admin.id, "first", "M")
        await dispatcher.notify_user(db_session, admin.id, "second", "M", type=NotificationType.URGENT)
        await dispatcher.notify_user(db_session, sales.id, "not mine", "M")
        await dispatcher.mark_read(db_session, first.id, admin.id)

        items, total, unread = await notification_service.list_notifications(db_session, admin.id)
        assert total == 2
        assert unread == 1
        assert {n.title for n in items} == {"first", "second"}

        items, total, _ = await notification_service.list_notifications(db_session, admin.id, type="urgent")
        assert [n.title for n in items] == ["second"]

        with pytest.raises(InvalidArgument):
            await notification_service.list_notifications(db_session, admin.id, type="LOUD")

    @pytest.mark.asyncio
    async def test_get_and_delete_other_users_notification(self, db_session, dispatcher, admin, sales):
        notification = await dispatcher.notify_user(db_session, admin.id, "T", "M")

        with pytest.raises(NotFound):
            await notification_service.get_notification(db_session, notification.id, sales.id)
        assert await notification_service.delete_notification(db_session, notification.id, sales.id) == 0
        assert await notification_service.delete_notification(db_session, notification.id, admin.id) == 1


class TestSendCustom:
    @pytest.mark.asyncio
    async def test_requires_audience(self, db_session, dispatcher, admin):
        with pytest.raises(InvalidArgument):
            await notification_service.send_custom(db_session, dispatcher, admin, "T", "M")

    @pytest.mark.asyncio
    async def test_engineer_cannot_send(self, db_session, dispatcher, engineer, admin):
        with pytest.raises(PermissionDenied):
            await notification_service.send_custom(db_session, dispatcher, engineer, "T", "M", user_ids=[admin.id])

    @pytest.mark.asyncio
    async def test_roles_and_users_with_unknown_id_skipped(self, db_session, dispatcher, service_head, sales, engineer):
        result = await notification_service.send_custom(
            db_session,
            dispatcher,
            service_head,
            "Plant shutdown",
            "Friday maintenance window",
            user_ids=[engineer.id, 9999],
            roles=["sales"],
            type="warning",
        )

        assert sorted(n.user_id for n in result) == sorted([sales.id, engineer.id])
        assert all(n.type == NotificationType.WARNING for n in result)


@pytest.mark.asyncio
async def test_statistics_admin_only(db_session, dispatcher, admin, sales):
    await dispatcher.notify_user(db_session, admin.id, "T", "M", type=NotificationType.URGENT)
    read = await dispatcher.notify_user(db_session, sales.id, "T", "M")
    await dispatcher.mark_read(db_session, read.id, sales.id)

    with pytest.raises(PermissionDenied):
        await notification_service.statistics(db_session, sales)

    stats = await notification_service.statistics(db_session, admin)
    assert stats["total"] == 2
    assert stats["unread"] == 1
    assert stats["read_rate"] == 50.0
    assert stats["type_counts"] == {"INFO": 1, "WARNING": 0, "URGENT": 1}


@pytest.mark.asyncio
async def test_best_effort_swallows_and_reloads(db_session, admin, engineer):
    async def failing():
        raise RuntimeError("boom")

    assert await best_effort(db_session, "test notification", failing()) is False
    # Session and every loaded instance stay usable
    assert admin.name == "Asha Admin"
    assert engineer.role == UserRole.ENGINEER
