from sqlalchemy import func, or_, select

from supporter360.db.models.product_mapping import ProductMapping
from supporter360.db.repositories.base import Repository


class ProductMappingRepository(Repository):
    async def find_meaning(self, product_id: str | None, category_id: str | None) -> str | None:
        """Return the meaning of the most recent mapping in effect for a product or category."""
        if not product_id and not category_id:
            return None

        clauses = []
        if product_id:
            clauses.append(ProductMapping.product_id == str(product_id))
        if category_id:
            clauses.append(ProductMapping.category_id == str(category_id))

        stmt = (
            select(ProductMapping.meaning)
            .where(ProductMapping.effective_from <= func.now(), or_(*clauses))
            .order_by(ProductMapping.effective_from.desc())
            .limit(1)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
