"""Repository layer modules."""

from app.repositories.finding_repository import FindingRepository
from app.repositories.narrative_choice_repository import NarrativeChoiceRepository
from app.repositories.narrative_setting_repository import NarrativeSettingRepository
from app.repositories.narrative_template_repository import NarrativeTemplateRepository

__all__ = [
    "FindingRepository",
    "NarrativeChoiceRepository",
    "NarrativeSettingRepository",
    "NarrativeTemplateRepository",
]
