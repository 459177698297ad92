"""Repository for narrative template data access."""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import NarrativeTemplate
from app.repositories.base_repository import BaseRepository
from app.schemas.narratives import NarrativeTemplateFilters


class NarrativeTemplateRepository(BaseRepository[NarrativeTemplate]):
    """Repository for tenant-scoped narrative templates."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, NarrativeTemplate)

    async def get_for_tenant(
        self, template_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> Optional[NarrativeTemplate]:
        """Get a template only if it belongs to the tenant."""
        try:
            query = select(NarrativeTemplate).where(
                NarrativeTemplate.id == template_id,
                NarrativeTemplate.tenant_id == tenant_id,
            )
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving narrative template {template_id}: {str(e)}",
                exc_info=True
            )
            raise

    async def list_active_by_category(
        self, tenant_id: uuid.UUID, category: str
    ) -> Sequence[NarrativeTemplate]:
        """Active templates of one category, most used first.

        Ties on use_count are ordered by id so candidate order is stable
        between calls.
        """
        try:
            query = (
                select(NarrativeTemplate)
                .where(
                    NarrativeTemplate.tenant_id == tenant_id,
                    NarrativeTemplate.is_active.is_(True),
                    NarrativeTemplate.category == category,
                )
                .order_by(NarrativeTemplate.use_count.desc(), NarrativeTemplate.id.asc())
            )
            result = await self.session.execute(query)
            return result.scalars().all()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error listing {category} narrative templates: {str(e)}",
                exc_info=True
            )
            raise

    def _filter_conditions(
        self, tenant_id: uuid.UUID, filters: NarrativeTemplateFilters
    ) -> list[Any]:
        conditions: list[Any] = [NarrativeTemplate.tenant_id == tenant_id]

        if filters.is_active is not None:
            conditions.append(NarrativeTemplate.is_active.is_(filters.is_active))
        if filters.category:
            conditions.append(NarrativeTemplate.category == filters.category.value)
        if filters.component:
            conditions.append(NarrativeTemplate.component.ilike(f"%{filters.component}%"))
        if filters.severity:
            conditions.append(NarrativeTemplate.severity == filters.severity.value)
        if filters.tags:
            # JSONB containment: template carries every requested tag
            conditions.append(NarrativeTemplate.tags.contains(filters.tags))
        if filters.search:
            pattern = f"%{filters.search}%"
            conditions.append(
                or_(
                    NarrativeTemplate.title.ilike(pattern),
                    NarrativeTemplate.body.ilike(pattern),
                )
            )
        return conditions

    async def search(
        self, tenant_id: uuid.UUID, filters: NarrativeTemplateFilters
    ) -> tuple[Sequence[NarrativeTemplate], int]:
        """Filtered page of a tenant's templates plus the total match count.

        Returns:
            (templates ordered by updated_at desc, total matching rows)
        """
        conditions = self._filter_conditions(tenant_id, filters)
        try:
            query = (
                select(NarrativeTemplate)
                .where(and_(*conditions))
                .order_by(NarrativeTemplate.updated_at.desc(), NarrativeTemplate.id.desc())
                .offset(filters.offset)
                .limit(filters.limit)
            )
            result = await self.session.execute(query)
            templates = result.scalars().all()

            count_query = (
                select(func.count())
                .select_from(NarrativeTemplate)
                .where(and_(*conditions))
            )
            total = (await self.session.execute(count_query)).scalar_one()
            return templates, total
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error searching narrative templates for tenant {tenant_id}: {str(e)}",
                exc_info=True
            )
            raise

    async def bulk_create(self, rows: list[dict[str, Any]]) -> int:
        """Insert many templates in one flush/commit.

        Returns:
            Number of rows inserted
        """
        try:
            self.session.add_all([NarrativeTemplate(**row) for row in rows])
            await self.session.flush()
            await self.session.commit()
            return len(rows)
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Error bulk inserting {len(rows)} narrative templates: {str(e)}",
                exc_info=True
            )
            raise

    async def increment_use_count(self, template_id: uuid.UUID, amount: int = 1) -> None:
        """Atomically add to a template's use_count.

        The addition happens inside the UPDATE statement so concurrent applies
        never lose increments.
        """
        try:
            stmt = (
                update(NarrativeTemplate)
                .where(NarrativeTemplate.id == template_id)
                .values(
                    use_count=NarrativeTemplate.use_count + amount,
                    updated_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Error incrementing use_count for narrative template {template_id}: {str(e)}",
                exc_info=True
            )
            raise
