"""Repository for the narrative fields of inspection findings."""

import uuid
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Finding
from app.repositories.base_repository import BaseRepository


class FindingRepository(BaseRepository[Finding]):
    """Reads findings and writes their applied narrative."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Finding)

    async def set_narrative(
        self,
        finding: Finding,
        narrative_id: uuid.UUID,
        narrative_text: str,
        variables: dict[str, Any],
        confidence: Optional[float] = None,
    ) -> Finding:
        """Overwrite the finding's narrative assignment (last write wins).

        Args:
            finding: Finding loaded through this repository
            narrative_id: Applied template ID
            narrative_text: Rendered snapshot of the template body
            variables: Variable bag used for rendering
            confidence: Optional auto-apply confidence score

        Returns:
            Updated Finding instance
        """
        return await self.apply_changes(
            finding,
            narrative_id=narrative_id,
            narrative_text=narrative_text,
            variables=dict(variables),
            confidence=confidence,
        )
