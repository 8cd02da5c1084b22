"""Tests for the machine catalogue and field reports."""

import pytest
from servicedesk.errors import Conflict, InvalidArgument, InvalidState, NotFound, PermissionDenied
from servicedesk.models.notification import Notification
from servicedesk.services import machine_service, report_service
from sqlalchemy import select

MACHINE = {
    "name": "Lathe 250",
    "category": "CNC Lathe",
    "brand": "Haas",
    "warranty_time_in_months": 12,
    "serial_number": "HS-250-0007",
}


class TestMachines:
    @pytest.mark.asyncio
    async def test_serial_unique_per_brand(self, db_session, admin, test_machine):
        with pytest.raises(Conflict):
            await machine_service.create_machine(db_session, admin, {**MACHINE, "serial_number": "HS-850-0001"})

        other_brand = await machine_service.create_machine(
            db_session, admin, {**MACHINE, "brand": "Mazak", "serial_number": "HS-850-0001"}
        )
        assert other_brand.id != test_machine.id

    @pytest.mark.asyncio
    async def test_warranty_range(self, db_session, admin):
        with pytest.raises(InvalidArgument) as exc_info:
            await machine_service.create_machine(db_session, admin, {**MACHINE, "warranty_time_in_months": 121})

        assert exc_info.value.details["field"] == "warranty_time_in_months"

    @pytest.mark.asyncio
    async def test_missing_fields(self, db_session, admin):
        with pytest.raises(InvalidArgument) as exc_info:
            await machine_service.create_machine(db_session, admin, {"name": "Lathe 250"})

        assert "brand" in exc_info.value.details["required"]

    @pytest.mark.asyncio
    async def test_update_rechecks_serial(self, db_session, admin, test_machine):
        machine = await machine_service.create_machine(db_session, admin, MACHINE)

        with pytest.raises(Conflict):
            await machine_service.update_machine(db_session, admin, machine.id, {"serial_number": "HS-850-0001"})

    @pytest.mark.asyncio
    async def test_delete_blocked_by_service_record(self, db_session, admin, test_machine, test_service_record):
        with pytest.raises(InvalidState) as exc_info:
            await machine_service.delete_machine(db_session, admin, test_machine.id)

        assert exc_info.value.details["service_records"] == 1

    @pytest.mark.asyncio
    async def test_find_by_serial(self, db_session, test_machine):
        found = await machine_service.find_by_serial(db_session, "850")
        assert [m.id for m in found] == [test_machine.id]

        with pytest.raises(NotFound):
            await machine_service.find_by_serial(db_session, "XYZ")

    @pytest.mark.asyncio
    async def test_categories_and_brands(self, db_session, admin, test_machine):
        await machine_service.create_machine(db_session, admin, {**MACHINE, "brand": "Mazak"})

        assert await machine_service.list_categories(db_session) == ["CNC Lathe", "Vertical Machining Center"]
        assert await machine_service.list_brands(db_session) == ["Haas", "Mazak"]


class TestReports:
    @pytest.mark.asyncio
    async def test_create_notifies_reviewers(
        self, db_session, dispatcher, engineer, admin, service_head, sales, commercial, test_service_record
    ):
        report = await report_service.create_report(
            db_session, dispatcher, engineer, test_service_record.id, {"report_data": {"spindle": "ok"}}
        )

        assert report.engineer_id == engineer.id
        assert report.report_data == {"spindle": "ok"}

        result = await db_session.execute(
            select(Notification.user_id).where(Notification.title == "Service Report Submitted")
        )
        assert sorted(result.scalars().all()) == sorted([admin.id, service_head.id, sales.id, commercial.id])

    @pytest.mark.asyncio
    async def test_sales_cannot_create(self, db_session, dispatcher, sales, test_service_record):
        with pytest.raises(PermissionDenied):
            await report_service.create_report(db_session, dispatcher, sales, test_service_record.id, {})

    @pytest.mark.asyncio
    async def test_missing_service_record(self, db_session, dispatcher, engineer):
        with pytest.raises(NotFound):
            await report_service.create_report(db_session, dispatcher, engineer, 999, {})

    @pytest.mark.asyncio
    async def test_engineer_only_modifies_own(
        self, db_session, dispatcher, engineer, other_engineer, service_head, test_service_record
    ):
        report = await report_service.create_report(db_session, dispatcher, engineer, test_service_record.id, {})

        with pytest.raises(PermissionDenied):
            await report_service.update_report(db_session, other_engineer, report.id, {"manual_url": "x"})
        with pytest.raises(PermissionDenied):
            await report_service.delete_report(db_session, other_engineer, report.id)

        updated = await report_service.update_report(
            db_session, service_head, report.id, {"manual_url": "https://docs.example.com/vmc850.pdf"}
        )
        assert updated.manual_url == "https://docs.example.com/vmc850.pdf"

    @pytest.mark.asyncio
    async def test_listings(self, db_session, dispatcher, engineer, other_engineer, test_service_record):
        await report_service.create_report(db_session, dispatcher, engineer, test_service_record.id, {})
        await report_service.create_report(db_session, dispatcher, other_engineer, test_service_record.id, {})

        for_record = await report_service.reports_for_service_record(db_session, test_service_record.id)
        mine, total = await report_service.reports_for_engineer(db_session, engineer.id)

        assert len(for_record) == 2
        assert total == 1 and mine[0].engineer_id == engineer.id
