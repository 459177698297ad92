"""Repository for the append-only narrative choice log."""

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import ApplyMode, NarrativeChoice
from app.repositories.base_repository import BaseRepository


class NarrativeChoiceRepository(BaseRepository[NarrativeChoice]):
    """Insert-only access to narrative choices. Rows are never updated."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, NarrativeChoice)

    async def record_choice(
        self,
        finding_id: uuid.UUID,
        narrative_id: uuid.UUID,
        mode: ApplyMode,
        score: float,
        user_id: Optional[uuid.UUID],
    ) -> NarrativeChoice:
        """Append one choice record for an applied narrative."""
        return await self.create(
            finding_id=finding_id,
            narrative_id=narrative_id,
            chosen=True,
            score=score,
            edited=mode == ApplyMode.MANUAL,
            selection_mode=mode.value,
            user_id=user_id,
        )
