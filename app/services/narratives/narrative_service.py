"""Narrative service: template management, suggestion and application to findings."""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional, Sequence, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.database.models import ApplyMode, Finding, NarrativeSetting, NarrativeTemplate
from app.repositories.finding_repository import FindingRepository
from app.repositories.narrative_choice_repository import NarrativeChoiceRepository
from app.repositories.narrative_setting_repository import NarrativeSettingRepository
from app.repositories.narrative_template_repository import NarrativeTemplateRepository
from app.schemas.narratives import (
    NarrativeSettingsUpdate,
    NarrativeSuggestion,
    NarrativeTemplateCreate,
    NarrativeTemplateFilters,
    NarrativeTemplateList,
    NarrativeTemplateResponse,
    NarrativeTemplateUpdate,
)
from app.services.base_service import BaseService
from app.services.narratives.constants import SUGGESTION_LIMIT, SUGGESTION_MIN_SCORE
from app.services.narratives.scorer import NarrativeScorer, map_section_to_category
from app.services.narratives.templating import extract_placeholders, render_narrative
from app.services.narratives.variable_extractor import VariableExtractor, validate_variables
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Template columns a patch may change but never clear
REQUIRED_TEMPLATE_FIELDS = ("title", "body", "category", "tags", "language")


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


class NarrativeService(BaseService):
    """Service for narrative templates and their use on inspection findings.

    Scoring, extraction and rendering are pure and synchronous; every
    persistence call goes through the repositories on the request session.
    """

    def __init__(self, session: AsyncSession):
        """Initialize narrative service.

        Args:
            session: Database session
        """
        super().__init__()
        self.session = session
        self.template_repo = NarrativeTemplateRepository(session)
        self.finding_repo = FindingRepository(session)
        self.choice_repo = NarrativeChoiceRepository(session)
        self.setting_repo = NarrativeSettingRepository(session)
        self.extractor = VariableExtractor()
        self.scorer = NarrativeScorer()

    # ------------------------------------------------------------------ #
    # Template CRUD
    # ------------------------------------------------------------------ #

    async def create_template(
        self,
        tenant_id: UUID,
        definition: NarrativeTemplateCreate,
        created_by: Optional[UUID] = None,
    ) -> NarrativeTemplate:
        """Create an active template with freshly computed placeholders."""
        return await self.execute(self._create_template, tenant_id, definition, created_by)

    async def _create_template(
        self,
        tenant_id: UUID,
        definition: NarrativeTemplateCreate,
        created_by: Optional[UUID],
    ) -> NarrativeTemplate:
        template = await self.template_repo.create(
            **self._template_row(tenant_id, definition, created_by)
        )
        LOGGER.info(
            "Narrative template created",
            extra={"template_id": str(template.id), "tenant_id": str(tenant_id)},
        )
        return template

    async def update_template(
        self,
        template_id: UUID,
        tenant_id: UUID,
        patch: NarrativeTemplateUpdate,
    ) -> NarrativeTemplate:
        """Apply a partial patch; placeholders are recomputed when the body changes.

        Raises:
            NotFoundError: If the template does not exist for the tenant
            ValidationError: If the patch sets a required field to null
        """
        return await self.execute(self._update_template, template_id, tenant_id, patch)

    async def _update_template(
        self,
        template_id: UUID,
        tenant_id: UUID,
        patch: NarrativeTemplateUpdate,
    ) -> NarrativeTemplate:
        template = await self.template_repo.get_for_tenant(template_id, tenant_id)
        if not template:
            raise NotFoundError("Narrative template", template_id)

        changes = {
            key: _enum_value(value)
            for key, value in patch.model_dump(exclude_unset=True).items()
        }
        cleared = [key for key in REQUIRED_TEMPLATE_FIELDS if key in changes and changes[key] is None]
        if cleared:
            raise ValidationError(
                "Narrative template fields cannot be null",
                errors=[{"loc": [key], "msg": "Field cannot be null", "type": "null_not_allowed"} for key in cleared],
            )
        if changes.get("body"):
            changes["placeholders"] = extract_placeholders(changes["body"])

        return await self.template_repo.apply_changes(template, **changes)

    async def deactivate_template(self, template_id: UUID, tenant_id: UUID) -> NarrativeTemplate:
        """Soft-delete a template. The row is kept for usage history.

        Raises:
            NotFoundError: If the template does not exist for the tenant
        """
        return await self.execute(self._deactivate_template, template_id, tenant_id)

    async def _deactivate_template(self, template_id: UUID, tenant_id: UUID) -> NarrativeTemplate:
        template = await self.template_repo.get_for_tenant(template_id, tenant_id)
        if not template:
            raise NotFoundError("Narrative template", template_id)

        template = await self.template_repo.apply_changes(template, is_active=False)
        LOGGER.info("Narrative template deactivated", extra={"template_id": str(template_id)})
        return template

    async def get_template(self, template_id: UUID, tenant_id: UUID) -> NarrativeTemplate:
        return await self.execute(self._get_template, template_id, tenant_id)

    async def _get_template(self, template_id: UUID, tenant_id: UUID) -> NarrativeTemplate:
        template = await self.template_repo.get_for_tenant(template_id, tenant_id)
        if not template:
            raise NotFoundError("Narrative template", template_id)
        return template

    async def list_templates(
        self,
        tenant_id: UUID,
        filters: Optional[NarrativeTemplateFilters] = None,
    ) -> NarrativeTemplateList:
        """List a tenant's templates with filtering and pagination."""
        return await self.execute(self._list_templates, tenant_id, filters or NarrativeTemplateFilters())

    async def _list_templates(
        self, tenant_id: UUID, filters: NarrativeTemplateFilters
    ) -> NarrativeTemplateList:
        templates, total = await self.template_repo.search(tenant_id, filters)
        return NarrativeTemplateList(
            templates=[NarrativeTemplateResponse.model_validate(t) for t in templates],
            total_count=total,
        )

    async def bulk_import(
        self,
        tenant_id: UUID,
        definitions: Sequence[Union[NarrativeTemplateCreate, Mapping[str, Any]]],
        created_by: Optional[UUID] = None,
    ) -> int:
        """Insert every definition as a new active template.

        Not idempotent: importing the same list twice creates duplicates.

        Raises:
            ValidationError: If any definition is invalid (nothing is inserted)
        """
        return await self.execute(self._bulk_import, tenant_id, definitions, created_by)

    async def _bulk_import(
        self,
        tenant_id: UUID,
        definitions: Sequence[Union[NarrativeTemplateCreate, Mapping[str, Any]]],
        created_by: Optional[UUID],
    ) -> int:
        parsed: list[NarrativeTemplateCreate] = []
        errors: list[dict[str, Any]] = []

        for index, definition in enumerate(definitions):
            if isinstance(definition, NarrativeTemplateCreate):
                parsed.append(definition)
                continue
            try:
                parsed.append(NarrativeTemplateCreate.model_validate(definition))
            except PydanticValidationError as e:
                errors.extend(
                    {"loc": [index, *err["loc"]], "msg": err["msg"], "type": err["type"]}
                    for err in e.errors()
                )

        if errors:
            raise ValidationError("Invalid narrative definitions", errors=errors)
        if not parsed:
            return 0

        count = await self.template_repo.bulk_create(
            [self._template_row(tenant_id, d, created_by) for d in parsed]
        )
        LOGGER.info(
            "Narrative templates imported",
            extra={"tenant_id": str(tenant_id), "count": count},
        )
        return count

    @staticmethod
    def _template_row(
        tenant_id: UUID,
        definition: NarrativeTemplateCreate,
        created_by: Optional[UUID],
    ) -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        return {
            "tenant_id": tenant_id,
            "title": definition.title,
            "body": definition.body,
            "category": definition.category.value,
            "component": definition.component,
            "severity": _enum_value(definition.severity),
            "tags": list(definition.tags),
            "language": definition.language,
            "placeholders": extract_placeholders(definition.body),
            "use_count": 0,
            "skip_count": 0,
            "is_active": True,
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        }

    # ------------------------------------------------------------------ #
    # Suggestion
    # ------------------------------------------------------------------ #

    async def suggest(
        self, finding_id: UUID, tenant_id: Optional[UUID] = None
    ) -> list[NarrativeSuggestion]:
        """Ranked narrative candidates for a finding.

        Args:
            finding_id: Finding to suggest for
            tenant_id: Caller's tenant; when given, findings of other tenants
                are reported as not found

        Returns:
            At most five suggestions scoring above 0.3, best first

        Raises:
            NotFoundError: If the finding does not exist or is not visible
        """
        return await self.execute(self._suggest, finding_id, tenant_id)

    async def _suggest(
        self, finding_id: UUID, tenant_id: Optional[UUID]
    ) -> list[NarrativeSuggestion]:
        finding = await self._load_finding(finding_id, tenant_id)

        category = map_section_to_category(finding.section_name)
        candidates = await self.template_repo.list_active_by_category(finding.tenant_id, category)

        variables = self.extractor.extract(
            finding.title, finding.summary, finding.section_name
        ).as_template_vars()

        scored = [
            (template, self.scorer.score(finding, template))
            for template in candidates
        ]
        # Stable sort keeps repository order (use_count desc) for equal scores
        ranked = sorted(
            (item for item in scored if item[1] > SUGGESTION_MIN_SCORE),
            key=lambda item: item[1],
            reverse=True,
        )[:SUGGESTION_LIMIT]

        LOGGER.info(
            "Narrative suggestions ranked",
            extra={
                "finding_id": str(finding_id),
                "category": category,
                "candidates": len(candidates),
                "returned": len(ranked),
            },
        )

        return [
            NarrativeSuggestion(
                template=NarrativeTemplateResponse.model_validate(template),
                score=score,
                variables=dict(variables),
            )
            for template, score in ranked
        ]

    # ------------------------------------------------------------------ #
    # Apply
    # ------------------------------------------------------------------ #

    async def apply(
        self,
        finding_id: UUID,
        narrative_id: UUID,
        tenant_id: UUID,
        variables: Optional[Mapping[str, Any]] = None,
        mode: ApplyMode = ApplyMode.MANUAL,
        confidence: Optional[float] = None,
        user_id: Optional[UUID] = None,
    ) -> Finding:
        """Render a template onto a finding and count the use.

        Steps: load template and finding, resolve variables, render, store the
        snapshot on the finding, atomically increment the template's use
        count, then record the choice when a user is known.

        Raises:
            NotFoundError: If the template or finding is not visible to the
                tenant; raised before anything is written
        """
        return await self.execute(
            self._apply, finding_id, narrative_id, tenant_id, variables, mode, confidence, user_id
        )

    async def _apply(
        self,
        finding_id: UUID,
        narrative_id: UUID,
        tenant_id: UUID,
        variables: Optional[Mapping[str, Any]],
        mode: ApplyMode,
        confidence: Optional[float],
        user_id: Optional[UUID],
    ) -> Finding:
        template = await self.template_repo.get_for_tenant(narrative_id, tenant_id)
        if not template:
            raise NotFoundError("Narrative template", narrative_id)

        finding = await self._load_finding(finding_id, tenant_id)

        if variables:
            final_variables = dict(variables)
        else:
            final_variables = self.extractor.extract(
                finding.title, finding.summary, finding.section_name
            ).as_template_vars()

        validation = validate_variables(final_variables, template.placeholders or [])
        if not validation.is_valid:
            LOGGER.warning(
                "Applying narrative with unresolved placeholders",
                extra={
                    "finding_id": str(finding_id),
                    "narrative_id": str(narrative_id),
                    "missing": validation.missing,
                },
            )

        narrative_text = render_narrative(template.body, final_variables)

        finding = await self.finding_repo.set_narrative(
            finding,
            narrative_id=template.id,
            narrative_text=narrative_text,
            variables=final_variables,
            confidence=confidence,
        )

        try:
            await self.template_repo.increment_use_count(template.id)
        except SQLAlchemyError:
            LOGGER.error(
                "Use count increment failed after finding update; finding keeps the new narrative",
                exc_info=True,
                extra={"finding_id": str(finding_id), "narrative_id": str(narrative_id)},
            )
            raise

        if user_id:
            await self._record_choice(finding_id, template.id, mode, confidence, user_id)

        LOGGER.info(
            "Narrative applied",
            extra={
                "finding_id": str(finding_id),
                "narrative_id": str(narrative_id),
                "mode": _enum_value(mode),
            },
        )
        return finding

    async def _record_choice(
        self,
        finding_id: UUID,
        narrative_id: UUID,
        mode: ApplyMode,
        confidence: Optional[float],
        user_id: UUID,
    ) -> None:
        """Best-effort audit write; a failure never undoes the applied narrative."""
        try:
            await self.choice_repo.record_choice(
                finding_id=finding_id,
                narrative_id=narrative_id,
                mode=mode,
                score=confidence or 0.0,
                user_id=user_id,
            )
        except SQLAlchemyError:
            LOGGER.warning(
                "Failed to record narrative choice",
                exc_info=True,
                extra={"finding_id": str(finding_id), "narrative_id": str(narrative_id)},
            )

    async def auto_apply(
        self,
        finding_id: UUID,
        tenant_id: UUID,
        user_id: Optional[UUID] = None,
    ) -> Optional[Finding]:
        """Apply the best suggestion when the tenant's auto-apply policy allows it.

        Returns:
            The updated finding, or None when auto-apply is off or no
            suggestion reaches the tenant's threshold
        """
        return await self.execute(self._auto_apply, finding_id, tenant_id, user_id)

    async def _auto_apply(
        self,
        finding_id: UUID,
        tenant_id: UUID,
        user_id: Optional[UUID],
    ) -> Optional[Finding]:
        settings = await self.setting_repo.get_or_create(tenant_id)
        if not settings.auto_apply_narratives:
            return None

        suggestions = await self._suggest(finding_id, tenant_id)
        if not suggestions or suggestions[0].score < settings.auto_apply_threshold:
            LOGGER.info(
                "No suggestion reached the auto-apply threshold",
                extra={
                    "finding_id": str(finding_id),
                    "threshold": settings.auto_apply_threshold,
                    "best_score": suggestions[0].score if suggestions else None,
                },
            )
            return None

        best = suggestions[0]
        return await self._apply(
            finding_id,
            best.template.id,
            tenant_id,
            best.variables,
            ApplyMode.AUTO,
            best.score,
            user_id,
        )

    # ------------------------------------------------------------------ #
    # Settings
    # ------------------------------------------------------------------ #

    async def get_settings(self, tenant_id: UUID) -> NarrativeSetting:
        """Tenant settings, created with defaults on first read."""
        return await self.execute(self.setting_repo.get_or_create, tenant_id)

    async def update_settings(
        self, tenant_id: UUID, patch: NarrativeSettingsUpdate
    ) -> NarrativeSetting:
        """Partial update of the tenant's settings; always refreshes updated_at."""
        return await self.execute(self._update_settings, tenant_id, patch)

    async def _update_settings(
        self, tenant_id: UUID, patch: NarrativeSettingsUpdate
    ) -> NarrativeSetting:
        settings = await self.setting_repo.get_or_create(tenant_id)
        return await self.setting_repo.apply_changes(
            settings, **patch.model_dump(exclude_unset=True, exclude_none=True)
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _load_finding(self, finding_id: UUID, tenant_id: Optional[UUID]) -> Finding:
        finding = await self.finding_repo.get_by_id(finding_id)
        if not finding or (tenant_id is not None and finding.tenant_id != tenant_id):
            raise NotFoundError("Finding", finding_id)
        return finding
