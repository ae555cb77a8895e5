"""Apply billing signals to a supporter's Membership row."""

import uuid
from datetime import datetime

import structlog

from supporter360.db.models.membership import Membership
from supporter360.db.repositories.membership import MembershipRepository
from supporter360.domain.membership import MembershipSignal, accepts_signal, next_status
from supporter360.domain.types import BillingMethod, Cadence, MembershipStatus, Tier, parse_enum

logger = structlog.get_logger(__name__)

_SUBSCRIPTION_SIGNALS = {
    MembershipStatus.ACTIVE: MembershipSignal.ACTIVATED,
    MembershipStatus.PAST_DUE: MembershipSignal.PAUSED,
    MembershipStatus.CANCELLED: MembershipSignal.CANCELLED,
}


class MembershipUpdater:
    def __init__(self, memberships: MembershipRepository):
        self.memberships = memberships

    async def record_payment(
        self,
        supporter_id: uuid.UUID,
        billing_method: BillingMethod,
        paid_at: datetime,
        *,
        tier: Tier | None = None,
        cadence: Cadence | None = None,
    ) -> Membership:
        """Successful payment: Active, last_payment_date bumped, billing method switched."""
        membership = await self.memberships.upsert(
            supporter_id,
            status=MembershipStatus.ACTIVE.value,
            billing_method=billing_method.value,
            tier=tier.value if tier else None,
            cadence=cadence.value if cadence else None,
            last_payment_date=paid_at,
        )
        logger.info(
            "membership_payment_recorded",
            supporter_id=str(supporter_id),
            billing_method=billing_method.value,
        )
        return membership

    async def record_payment_failure(self, supporter_id: uuid.UUID, billing_method: BillingMethod) -> Membership | None:
        return await self._transition(supporter_id, billing_method, MembershipSignal.PAYMENT_FAILED)

    async def cancel(self, supporter_id: uuid.UUID, billing_method: BillingMethod) -> Membership | None:
        return await self._transition(supporter_id, billing_method, MembershipSignal.CANCELLED)

    async def ensure_active(
        self,
        supporter_id: uuid.UUID,
        billing_method: BillingMethod,
        *,
        tier: Tier | None = None,
        cadence: Cadence | None = None,
    ) -> Membership:
        """Mandate/subscription established: upsert as Active without touching last_payment_date."""
        return await self.memberships.upsert(
            supporter_id,
            status=MembershipStatus.ACTIVE.value,
            billing_method=billing_method.value,
            tier=tier.value if tier else None,
            cadence=cadence.value if cadence else None,
        )

    async def apply_subscription(
        self,
        supporter_id: uuid.UUID,
        billing_method: BillingMethod,
        status: MembershipStatus,
        *,
        cadence: Cadence | None = None,
        tier: Tier | None = None,
    ) -> Membership | None:
        """Upsert a membership from subscription state (created/updated/paused/cancelled)."""
        signal = _SUBSCRIPTION_SIGNALS.get(status)
        if signal is None:
            logger.warning("membership_subscription_status_ignored", status=status.value)
            return None

        current = await self.memberships.find_by_supporter_id(supporter_id)
        if current is not None and not accepts_signal(current.billing_method, billing_method.value, signal):
            self._log_foreign_signal(supporter_id, current, billing_method, signal)
            return current

        current_status = None
        if current is not None:
            current_status = parse_enum(MembershipStatus, current.status) or MembershipStatus.UNKNOWN
        target = next_status(current_status, signal)
        if target is None:
            logger.info("membership_missing_signal_skipped", supporter_id=str(supporter_id), signal=signal.value)
            return None

        return await self.memberships.upsert(
            supporter_id,
            status=target.value,
            billing_method=billing_method.value,
            tier=tier.value if tier else None,
            cadence=cadence.value if cadence else None,
        )

    async def _transition(
        self,
        supporter_id: uuid.UUID,
        billing_method: BillingMethod,
        signal: MembershipSignal,
    ) -> Membership | None:
        current = await self.memberships.find_by_supporter_id(supporter_id)
        if current is None:
            logger.info("membership_missing_signal_skipped", supporter_id=str(supporter_id), signal=signal.value)
            return None

        if not accepts_signal(current.billing_method, billing_method.value, signal):
            self._log_foreign_signal(supporter_id, current, billing_method, signal)
            return current

        current_status = parse_enum(MembershipStatus, current.status) or MembershipStatus.UNKNOWN
        target = next_status(current_status, signal)
        if target is None or target == current_status:
            return current

        match target:
            case MembershipStatus.PAST_DUE:
                updated = await self.memberships.mark_past_due(supporter_id)
            case MembershipStatus.CANCELLED:
                updated = await self.memberships.cancel(supporter_id)
            case MembershipStatus.ACTIVE:
                updated = await self.memberships.mark_active(supporter_id)
            case _:
                return current

        logger.info(
            "membership_status_changed",
            supporter_id=str(supporter_id),
            from_status=current_status.value,
            to_status=target.value,
            signal=signal.value,
        )
        return updated

    @staticmethod
    def _log_foreign_signal(supporter_id, current: Membership, billing_method: BillingMethod, signal) -> None:
        logger.info(
            "membership_signal_from_other_billing_method",
            supporter_id=str(supporter_id),
            billing_method_of_record=current.billing_method,
            signal_billing_method=billing_method.value,
            signal=signal.value,
        )
