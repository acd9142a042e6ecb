"""Tests for user administration, pay rate history, and metrics."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from timesheet_engine.auth import verify_password
from timesheet_engine.errors import ConflictError, NotActionableError, ValidationError
from timesheet_engine.services.pay_service import PayService
from timesheet_engine.services.user_service import UserService, months_before

from .conftest import seed_timesheet


class TestUserAdministration:
    async def test_create_user(self, session, users):
        service = UserService(session)

        user = await service.create_user(
            email=" New.Person@Test.com ",
            name="New Person",
            role="STAFF",
            password="s3cret!",
            manager_id=users["manager"].id,
            pay_rate=Decimal("17.25"),
        )

        assert user.email == "new.person@test.com"
        assert user.manager.name == "Max Manager"
        assert user.status == "active"
        assert verify_password("s3cret!", user.password_hash)

    async def test_duplicate_email(self, session, users):
        with pytest.raises(ConflictError):
            await UserService(session).create_user(email="STAFF@test.com", name="Dup")

    @pytest.mark.parametrize(
        "email,name,role",
        [
            ("not-an-email", "Name", "STAFF"),
            ("ok@test.com", "  ", "STAFF"),
            ("ok@test.com", "Name", "OWNER"),
        ],
    )
    async def test_invalid_fields(self, session, users, email, name, role):
        with pytest.raises(ValidationError):
            await UserService(session).create_user(email=email, name=name, role=role)

    async def test_update_user(self, session, users):
        service = UserService(session)

        user = await service.update_user(
            users["staff"].id, {"name": "Samantha Staff", "role": "MANAGER"}
        )

        assert user.name == "Samantha Staff"
        assert user.role == "MANAGER"

    async def test_update_rejects_unknown_fields(self, session, users):
        with pytest.raises(ValidationError):
            await UserService(session).update_user(users["staff"].id, {"manager_id": None})

    async def test_update_email_taken(self, session, users):
        with pytest.raises(ConflictError):
            await UserService(session).update_user(users["staff"].id, {"email": "peer@test.com"})

    async def test_set_status(self, session, users):
        service = UserService(session)

        user = await service.set_status(users["peer"].id, "suspended")
        assert user.status == "suspended"

        with pytest.raises(ValidationError):
            await service.set_status(users["peer"].id, "deleted")

    async def test_list_users_filters(self, session, users):
        service = UserService(session)

        staff = await service.list_users(role="STAFF")
        assert [u.name for u in staff] == ["Oscar Outsider", "Pat Peer", "Sam Staff"]
        assert len(await service.list_users()) == 7

        with pytest.raises(ValidationError):
            await service.list_users(role="INTERN")

    async def test_missing_user(self, session, users):
        with pytest.raises(NotActionableError):
            await UserService(session).get_user(uuid4())


class TestManagerTree:
    async def test_assign_and_clear(self, session, users):
        service = UserService(session)

        user = await service.assign_manager(users["outsider"].id, users["manager"].id)
        assert user.manager_id == users["manager"].id

        user = await service.assign_manager(users["outsider"].id, None)
        assert user.manager_id is None

    async def test_self_management_rejected(self, session, users):
        with pytest.raises(ConflictError, match="themselves"):
            await UserService(session).assign_manager(users["manager"].id, users["manager"].id)

    async def test_cycle_rejected(self, session, users):
        service = UserService(session)
        manager_id, staff_id = users["manager"].id, users["staff"].id

        # staff already reports to manager; manager reporting to staff would loop
        with pytest.raises(ConflictError, match="cycle"):
            await service.assign_manager(manager_id, staff_id)


class TestPayRateHistory:
    async def test_new_rate_closes_open_window(self, session, users):
        service = UserService(session)
        staff_id = users["staff"].id

        await service.add_pay_rate(staff_id, Decimal("20.00"), date(2024, 1, 1), today=date(2024, 2, 1))
        await service.add_pay_rate(staff_id, Decimal("22.00"), date(2024, 3, 16), today=date(2024, 2, 1))

        rows = await service.list_pay_rates(staff_id)
        assert [(r.pay_rate, r.effective_date, r.end_date) for r in rows] == [
            (Decimal("20.00"), date(2024, 1, 1), date(2024, 3, 16)),
            (Decimal("22.00"), date(2024, 3, 16), None),
        ]

    async def test_current_rate_follows_window_containing_today(self, session, users):
        service = UserService(session)
        staff_id = users["staff"].id

        await service.add_pay_rate(staff_id, Decimal("21.00"), date(2024, 1, 1), today=date(2024, 2, 1))
        assert (await service.get_user(staff_id)).pay_rate == Decimal("21.00")

        # A future raise does not change today's rate
        await service.add_pay_rate(staff_id, Decimal("23.00"), date(2024, 6, 1), today=date(2024, 2, 1))
        assert (await service.get_user(staff_id)).pay_rate == Decimal("21.00")

    async def test_overlap_rejected(self, session, users):
        service = UserService(session)
        staff_id = users["staff"].id
        await service.add_pay_rate(
            staff_id, Decimal("20.00"), date(2024, 1, 1), date(2024, 6, 1), today=date(2024, 2, 1)
        )

        with pytest.raises(ConflictError, match="overlaps"):
            await service.add_pay_rate(
                staff_id, Decimal("21.00"), date(2024, 3, 1), date(2024, 9, 1), today=date(2024, 2, 1)
            )

    async def test_backdated_window_inside_history_rejected(self, session, users):
        service = UserService(session)
        staff_id = users["staff"].id
        await service.add_pay_rate(staff_id, Decimal("20.00"), date(2024, 1, 1), today=date(2024, 2, 1))
        await service.add_pay_rate(staff_id, Decimal("22.00"), date(2024, 4, 1), today=date(2024, 2, 1))

        with pytest.raises(ConflictError):
            await service.add_pay_rate(staff_id, Decimal("21.00"), date(2024, 2, 1), today=date(2024, 2, 1))

    async def test_invalid_windows(self, session, users):
        service = UserService(session)
        with pytest.raises(ValidationError):
            await service.add_pay_rate(users["staff"].id, Decimal("-1"), date(2024, 1, 1))
        with pytest.raises(ValidationError):
            await service.add_pay_rate(
                users["staff"].id, Decimal("20"), date(2024, 2, 1), date(2024, 1, 1)
            )


class TestPayService:
    async def test_pay_across_rate_change(self, session_factory, session, users):
        staff = users["staff"]
        async with session_factory() as setup:
            service = UserService(setup)
            await service.add_pay_rate(staff.id, Decimal("20.00"), date(2024, 1, 1), today=date(2024, 1, 2))
            await service.add_pay_rate(staff.id, Decimal("25.00"), date(2024, 3, 1), today=date(2024, 1, 2))
        await seed_timesheet(
            session_factory,
            staff,
            date(2024, 2, 16),
            "APPROVED",
            {date(2024, 2, 20): (9, 17), date(2024, 2, 21): (9, 13)},
        )
        await seed_timesheet(
            session_factory,
            staff,
            date(2024, 3, 1),
            "APPROVED",
            {date(2024, 3, 4): (9, 17)},
            plawa={date(2024, 3, 5): Decimal("2")},
        )
        await seed_timesheet(session_factory, staff, date(2023, 12, 16), "PENDING_HR", {date(2023, 12, 18): (9, 17)})

        earnings = (await PayService(session).estimated_annual_earnings(staff.id, 2024)).rounded()

        assert earnings.total_hours == Decimal("22.00")
        assert earnings.total_pay == Decimal("490.00")
        assert [(line.pay_rate, line.hours) for line in earnings.breakdown] == [
            (Decimal("20.00"), Decimal("12.00")),
            (Decimal("25.00"), Decimal("10.00")),
        ]

    async def test_unknown_user(self, session, users):
        with pytest.raises(NotActionableError):
            await PayService(session).pay_for_user(uuid4())


class TestUserMetrics:
    def test_months_before_clamps(self):
        assert months_before(date(2024, 3, 31), 1) == date(2024, 2, 29)
        assert months_before(date(2024, 1, 15), 12) == date(2023, 1, 15)

    async def test_metrics(self, session_factory, session, users):
        staff = users["staff"]
        await seed_timesheet(
            session_factory,
            staff,
            date(2024, 2, 1),
            "APPROVED",
            {date(2024, 2, 5): (8, 16), date(2024, 2, 6): (8, 12)},
            plawa={date(2024, 2, 7): Decimal("4")},
        )
        await seed_timesheet(
            session_factory, staff, date(2024, 3, 1), "PENDING_MANAGER", {date(2024, 3, 4): (8, 16)}
        )

        metrics = await UserService(session).user_metrics(staff.id, months=3, today=date(2024, 3, 8))

        assert metrics.timesheet_count == 2
        assert metrics.approved_count == 1
        assert metrics.pending_count == 1
        assert metrics.hours.total == Decimal("24")
        assert metrics.hours.plawa == Decimal("4")
        assert metrics.approval_rate == Decimal("50")
        assert [m.month for m in metrics.monthly] == ["2024-02", "2024-03"]
        assert metrics.day_of_week["Monday"].total == Decimal("16")
        assert metrics.earnings.total_pay == Decimal("480")
        assert metrics.recent[0][0].period_start == date(2024, 3, 1)

    async def test_metrics_without_timesheets(self, session, users):
        metrics = await UserService(session).user_metrics(users["peer"].id, today=date(2024, 3, 8))

        assert metrics.timesheet_count == 0
        assert metrics.approval_rate == 0
        assert metrics.average_hours_per_timesheet == 0
        assert metrics.earnings.total_pay == 0
