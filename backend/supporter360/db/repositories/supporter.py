"""Supporter persistence: lookups by email/linked id, creation and linkage merges."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import cast, func, or_, select, update
from sqlalchemy.dialects.postgresql import JSONB, insert

from supporter360.db.models.email_alias import EmailAlias
from supporter360.db.models.mailchimp_aggregate import MailchimpAggregate
from supporter360.db.models.supporter import Supporter
from supporter360.db.repositories.base import Repository

_UPDATABLE_FIELDS = frozenset({"name", "primary_email", "phone", "supporter_type", "supporter_type_source"})


class SupporterRepository(Repository):
    async def find_by_id(self, supporter_id: uuid.UUID) -> Supporter | None:
        async with self.session_factory() as session:
            return await session.get(Supporter, supporter_id)

    async def find_by_email(self, email: str) -> list[Supporter]:
        """Return every Supporter whose primary email or alias matches, oldest first."""
        normalized = email.strip().lower()
        alias_owners = select(EmailAlias.supporter_id).where(EmailAlias.email == normalized)
        stmt = (
            select(Supporter)
            .where(
                or_(
                    func.lower(Supporter.primary_email) == normalized,
                    Supporter.supporter_id.in_(alias_owners),
                )
            )
            .order_by(Supporter.created_at, Supporter.supporter_id)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def find_by_linked_id(self, provider: str, customer_id: str) -> Supporter | None:
        stmt = (
            select(Supporter)
            .where(Supporter.linked_ids[provider].astext == str(customer_id))
            .order_by(Supporter.created_at, Supporter.supporter_id)
            .limit(1)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def create(
        self,
        *,
        name: str | None,
        primary_email: str | None,
        phone: str | None = None,
        supporter_type: str = "Unknown",
        supporter_type_source: str = "auto",
        linked_ids: dict[str, str] | None = None,
        flags: dict[str, Any] | None = None,
    ) -> Supporter:
        supporter = Supporter(
            name=name,
            primary_email=primary_email.lower() if primary_email else None,
            phone=phone,
            supporter_type=supporter_type,
            supporter_type_source=supporter_type_source,
            linked_ids=dict(linked_ids or {}),
            flags=dict(flags or {}),
        )
        async with self.session_factory() as session:
            session.add(supporter)
            await session.commit()
            await session.refresh(supporter)
            return supporter

    async def update(self, supporter_id: uuid.UUID, **fields: Any) -> Supporter | None:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update supporter fields: {sorted(unknown)}")

        async with self.session_factory() as session:
            supporter = await session.get(Supporter, supporter_id)
            if supporter is None:
                return None
            for key, value in fields.items():
                setattr(supporter, key, value)
            await session.commit()
            await session.refresh(supporter)
            return supporter

    async def update_linked_ids(self, supporter_id: uuid.UUID, linked_ids: dict[str, str]) -> Supporter | None:
        """Shallow-merge ``linked_ids`` into the stored map (JSONB ``||``)."""
        return await self._merge_json(supporter_id, Supporter.linked_ids, linked_ids)

    async def set_flags(self, supporter_id: uuid.UUID, flags: dict[str, Any]) -> Supporter | None:
        return await self._merge_json(supporter_id, Supporter.flags, flags)

    async def _merge_json(self, supporter_id, column, values: dict[str, Any]) -> Supporter | None:
        stmt = (
            update(Supporter)
            .where(Supporter.supporter_id == supporter_id)
            .values({column: column.op("||")(cast(values, JSONB)), Supporter.updated_at: func.now()})
            .returning(Supporter)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            supporter = result.scalar_one_or_none()
            await session.commit()
            return supporter

    async def add_email_alias(self, supporter_id: uuid.UUID, email: str, is_shared: bool = False) -> None:
        stmt = (
            insert(EmailAlias)
            .values(id=uuid.uuid4(), supporter_id=supporter_id, email=email.strip().lower(), is_shared=is_shared)
            .on_conflict_do_nothing(index_elements=["email", "supporter_id"])
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def increment_click_count(self, supporter_id: uuid.UUID, clicked_at: datetime) -> None:
        stmt = insert(MailchimpAggregate).values(
            supporter_id=supporter_id, click_count=1, last_click_date=clicked_at
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["supporter_id"],
            set_={
                "click_count": MailchimpAggregate.click_count + 1,
                "last_click_date": func.greatest(MailchimpAggregate.last_click_date, stmt.excluded.last_click_date),
            },
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()
