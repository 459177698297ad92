"""Repository for per-tenant narrative settings."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import NarrativeSetting
from app.repositories.base_repository import BaseRepository

DEFAULT_AUTO_APPLY = False
DEFAULT_AUTO_APPLY_THRESHOLD = 0.72
DEFAULT_LANGUAGE = "en-US"


class NarrativeSettingRepository(BaseRepository[NarrativeSetting]):
    """One settings row per tenant, created lazily with defaults."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, NarrativeSetting)

    async def get_by_tenant(self, tenant_id: uuid.UUID) -> Optional[NarrativeSetting]:
        try:
            query = select(NarrativeSetting).where(NarrativeSetting.tenant_id == tenant_id)
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving narrative settings for tenant {tenant_id}: {str(e)}",
                exc_info=True
            )
            raise

    async def get_or_create(self, tenant_id: uuid.UUID) -> NarrativeSetting:
        """Return the tenant's settings, inserting the default row if absent.

        Uses INSERT ... ON CONFLICT DO NOTHING on the unique tenant_id so two
        concurrent first reads end up with the same single row.
        """
        existing = await self.get_by_tenant(tenant_id)
        if existing:
            return existing

        try:
            stmt = (
                pg_insert(NarrativeSetting)
                .values(
                    id=uuid.uuid4(),
                    tenant_id=tenant_id,
                    auto_apply_narratives=DEFAULT_AUTO_APPLY,
                    auto_apply_threshold=DEFAULT_AUTO_APPLY_THRESHOLD,
                    language=DEFAULT_LANGUAGE,
                )
                .on_conflict_do_nothing(index_elements=[NarrativeSetting.tenant_id])
            )
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Error creating default narrative settings for tenant {tenant_id}: {str(e)}",
                exc_info=True
            )
            raise

        created = await self.get_by_tenant(tenant_id)
        if created is None:
            raise SQLAlchemyError(f"Narrative settings for tenant {tenant_id} missing after insert")
        return created
