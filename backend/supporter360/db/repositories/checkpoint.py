from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert

from supporter360.db.models.integration_checkpoint import IntegrationCheckpoint
from supporter360.db.repositories.base import Repository


class CheckpointRepository(Repository):
    async def get(self, name: str) -> datetime | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(IntegrationCheckpoint.value).where(IntegrationCheckpoint.name == name)
            )
            return result.scalar_one_or_none()

    async def set(self, name: str, value: datetime) -> None:
        stmt = insert(IntegrationCheckpoint).values(name=name, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=["name"],
            set_={"value": stmt.excluded.value, "updated_at": func.now()},
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()
