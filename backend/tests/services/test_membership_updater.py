import uuid
from datetime import UTC, datetime

import pytest

from supporter360.domain.types import BillingMethod, Cadence, MembershipStatus, Tier
from supporter360.services.membership_updater import MembershipUpdater

pytestmark = pytest.mark.unit

PAID_AT = datetime(2024, 2, 1, tzinfo=UTC)


@pytest.fixture
def updater(memberships):
    return MembershipUpdater(memberships)


class TestRecordPayment:
    async def test_creates_active_membership(self, updater, memberships):
        sid = uuid.uuid4()

        await updater.record_payment(sid, BillingMethod.GOCARDLESS, PAID_AT, cadence=Cadence.MONTHLY)

        row = memberships.rows[sid]
        assert row.status == "Active"
        assert row.billing_method == "gocardless"
        assert row.cadence == "Monthly"
        assert row.last_payment_date == PAID_AT

    async def test_keeps_existing_tier_when_absent(self, updater, memberships):
        sid = uuid.uuid4()
        memberships.add(sid, status="Past Due", tier="OAP", billing_method="stripe")

        await updater.record_payment(sid, BillingMethod.STRIPE, PAID_AT)

        row = memberships.rows[sid]
        assert row.status == "Active"
        assert row.tier == "OAP"

    async def test_success_switches_billing_method(self, updater, memberships):
        sid = uuid.uuid4()
        memberships.add(sid, status="Active", billing_method="gocardless")

        await updater.record_payment(sid, BillingMethod.STRIPE, PAID_AT, tier=Tier.FULL)

        assert memberships.rows[sid].billing_method == "stripe"
        assert memberships.rows[sid].tier == "Full"


class TestFailureAndCancel:
    async def test_failure_marks_past_due(self, updater, memberships):
        sid = uuid.uuid4()
        memberships.add(sid, status="Active", billing_method="stripe")

        result = await updater.record_payment_failure(sid, BillingMethod.STRIPE)

        assert result.status == "Past Due"

    async def test_failure_without_membership_is_skipped(self, updater, memberships):
        assert await updater.record_payment_failure(uuid.uuid4(), BillingMethod.STRIPE) is None
        assert memberships.rows == {}

    async def test_failure_from_other_billing_method_is_ignored(self, updater, memberships):
        sid = uuid.uuid4()
        memberships.add(sid, status="Active", billing_method="gocardless")

        await updater.record_payment_failure(sid, BillingMethod.STRIPE)

        assert memberships.rows[sid].status == "Active"

    async def test_failure_on_cancelled_stays_cancelled(self, updater, memberships):
        sid = uuid.uuid4()
        memberships.add(sid, status="Cancelled", billing_method="stripe")

        await updater.record_payment_failure(sid, BillingMethod.STRIPE)

        assert memberships.rows[sid].status == "Cancelled"

    async def test_cancel(self, updater, memberships):
        sid = uuid.uuid4()
        memberships.add(sid, status="Past Due", billing_method="gocardless")

        await updater.cancel(sid, BillingMethod.GOCARDLESS)

        assert memberships.rows[sid].status == "Cancelled"


class TestSubscriptions:
    async def test_creates_from_subscription(self, updater, memberships):
        sid = uuid.uuid4()

        await updater.apply_subscription(sid, BillingMethod.STRIPE, MembershipStatus.ACTIVE, cadence=Cadence.ANNUAL)

        assert memberships.rows[sid].status == "Active"
        assert memberships.rows[sid].cadence == "Annual"
        assert memberships.rows[sid].last_payment_date is None

    async def test_foreign_cancellation_is_ignored(self, updater, memberships):
        sid = uuid.uuid4()
        memberships.add(sid, status="Active", billing_method="gocardless")

        await updater.apply_subscription(sid, BillingMethod.STRIPE, MembershipStatus.CANCELLED)

        assert memberships.rows[sid].status == "Active"

    async def test_unknown_status_is_ignored(self, updater, memberships):
        assert await updater.apply_subscription(uuid.uuid4(), BillingMethod.STRIPE, MembershipStatus.UNKNOWN) is None
        assert memberships.rows == {}

    async def test_paused_without_membership_is_skipped(self, updater, memberships):
        assert await updater.apply_subscription(uuid.uuid4(), BillingMethod.STRIPE, MembershipStatus.PAST_DUE) is None
        assert memberships.rows == {}

    async def test_cancelled_without_membership_records_cancelled(self, updater, memberships):
        sid = uuid.uuid4()

        await updater.apply_subscription(sid, BillingMethod.STRIPE, MembershipStatus.CANCELLED)

        assert memberships.rows[sid].status == "Cancelled"

    async def test_pause_leaves_cancelled_membership_cancelled(self, updater, memberships):
        sid = uuid.uuid4()
        memberships.add(sid, status="Cancelled", billing_method="stripe")

        await updater.apply_subscription(sid, BillingMethod.STRIPE, MembershipStatus.PAST_DUE)

        assert memberships.rows[sid].status == "Cancelled"

    async def test_ensure_active_keeps_last_payment_date(self, updater, memberships):
        sid = uuid.uuid4()
        memberships.add(sid, status="Past Due", billing_method="gocardless", last_payment_date=PAID_AT)

        await updater.ensure_active(sid, BillingMethod.GOCARDLESS)

        assert memberships.rows[sid].status == "Active"
        assert memberships.rows[sid].last_payment_date == PAID_AT
