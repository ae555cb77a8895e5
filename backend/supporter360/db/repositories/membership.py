"""Membership persistence: one row per supporter, COALESCE-merging upserts."""

import uuid
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert

from supporter360.core.exceptions import MembershipNotFoundError
from supporter360.db.models.membership import Membership
from supporter360.db.repositories.base import Repository


class MembershipRepository(Repository):
    async def find_by_supporter_id(self, supporter_id: uuid.UUID) -> Membership | None:
        async with self.session_factory() as session:
            result = await session.execute(select(Membership).where(Membership.supporter_id == supporter_id))
            return result.scalar_one_or_none()

    async def upsert(
        self,
        supporter_id: uuid.UUID,
        *,
        status: str,
        billing_method: str | None = None,
        tier: str | None = None,
        cadence: str | None = None,
        last_payment_date: datetime | None = None,
    ) -> Membership:
        """Create or update the supporter's membership.

        ``status`` always wins. Every other field only overwrites the stored
        value when the incoming one is non-null.
        """
        stmt = insert(Membership).values(
            id=uuid.uuid4(),
            supporter_id=supporter_id,
            status=status,
            billing_method=billing_method,
            tier=tier,
            cadence=cadence,
            last_payment_date=last_payment_date,
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=["supporter_id"],
            set_={
                "status": excluded.status,
                "billing_method": func.coalesce(excluded.billing_method, Membership.billing_method),
                "tier": func.coalesce(excluded.tier, Membership.tier),
                "cadence": func.coalesce(excluded.cadence, Membership.cadence),
                "last_payment_date": func.coalesce(excluded.last_payment_date, Membership.last_payment_date),
                "updated_at": func.now(),
            },
        ).returning(Membership)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            membership = result.scalar_one()
            await session.commit()
            return membership

    async def update_last_payment_date(self, supporter_id: uuid.UUID, paid_at: datetime) -> Membership:
        return await self._update(supporter_id, last_payment_date=paid_at)

    async def mark_active(self, supporter_id: uuid.UUID) -> Membership:
        return await self._update(supporter_id, status="Active")

    async def mark_past_due(self, supporter_id: uuid.UUID) -> Membership:
        return await self._update(supporter_id, status="Past Due")

    async def cancel(self, supporter_id: uuid.UUID) -> Membership:
        return await self._update(supporter_id, status="Cancelled")

    async def _update(self, supporter_id: uuid.UUID, **values) -> Membership:
        stmt = (
            update(Membership)
            .where(Membership.supporter_id == supporter_id)
            .values(**values, updated_at=func.now())
            .returning(Membership)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            membership = result.scalar_one_or_none()
            if membership is None:
                raise MembershipNotFoundError(supporter_id)
            await session.commit()
            return membership
