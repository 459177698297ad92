"""
Narrative Schema Definitions

Pydantic models for the narrative engine, grouped by concern:
- Template definitions (create / patch / list filters / responses)
- Variable extraction (structured hints, extracted variables, validation)
- Suggestion and apply payloads
- Per-tenant narrative settings
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.database.models import ApplyMode, NarrativeCategory, Severity


# Template Models
class NarrativeTemplateCreate(BaseModel):
    """Definition of a new narrative template."""

    title: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1, description="Template text with {{placeholder}} tokens")
    category: NarrativeCategory
    component: Optional[str] = Field(None, max_length=255)
    severity: Optional[Severity] = None
    tags: list[str] = Field(default_factory=list)
    language: str = Field(default="en-US", max_length=16)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Roof Shingle Damage",
                "body": "The {{material}} shingles on the {{location}} roof show {{condition}}.",
                "category": "ROOFING",
                "component": "Shingles",
                "severity": "MAJOR",
                "tags": ["damage", "repair"],
                "language": "en-US",
            }
        }
    )


class NarrativeTemplateUpdate(BaseModel):
    """Partial patch of a narrative template. Unset fields are left untouched."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    body: Optional[str] = Field(None, min_length=1)
    category: Optional[NarrativeCategory] = None
    component: Optional[str] = Field(None, max_length=255)
    severity: Optional[Severity] = None
    tags: Optional[list[str]] = None
    language: Optional[str] = Field(None, max_length=16)


class NarrativeTemplateFilters(BaseModel):
    """Filters for listing a tenant's templates."""

    search: Optional[str] = Field(None, description="Case-insensitive match on title or body")
    category: Optional[NarrativeCategory] = None
    component: Optional[str] = Field(None, description="Case-insensitive substring match")
    tags: Optional[list[str]] = Field(None, description="Templates carrying all of these tags")
    severity: Optional[Severity] = None
    is_active: Optional[bool] = None
    limit: int = Field(default=50, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class NarrativeTemplateResponse(BaseModel):
    """Narrative template as returned to callers."""

    id: UUID
    tenant_id: UUID
    title: str
    body: str
    category: str
    component: Optional[str] = None
    severity: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    placeholders: list[str] = Field(default_factory=list)
    language: str = "en-US"
    use_count: int = 0
    is_active: bool = True
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class NarrativeTemplateList(BaseModel):
    templates: list[NarrativeTemplateResponse]
    total_count: int


# Variable Extraction Models
class StructuredHints(BaseModel):
    """Structured inspection data that overrides text-derived variables.

    Only the keys below are recognised; anything else is ignored.
    """

    room: Optional[str] = None
    area: Optional[str] = None
    location: Optional[str] = None
    component: Optional[str] = None
    system: Optional[str] = None
    condition: Optional[str] = None
    status: Optional[str] = None
    material: Optional[str] = None
    quantity: Optional[int | float | str] = None
    count: Optional[int | float | str] = None

    model_config = ConfigDict(extra="ignore")


class ExtractedVariables(BaseModel):
    """Variables derived from a finding for template rendering."""

    location: Optional[str] = None
    condition: Optional[str] = None
    quantity: Optional[str] = None
    unit: Optional[str] = None
    component: Optional[str] = None
    material: Optional[str] = None
    area: Optional[str] = None
    room_name: Optional[str] = Field(None, alias="roomName")
    dimension: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    def as_template_vars(self) -> dict[str, str]:
        """Variables keyed by their template placeholder names, unset ones dropped."""
        return self.model_dump(by_alias=True, exclude_none=True)


class VariableValidation(BaseModel):
    is_valid: bool
    missing: list[str] = Field(default_factory=list)


class ExtractVariablesRequest(BaseModel):
    title: str = Field(..., min_length=1)
    summary: str = Field(..., min_length=1)
    section_name: Optional[str] = None
    structured_data: Optional[StructuredHints] = None


class RenderRequest(BaseModel):
    body: str = Field(..., min_length=1)
    variables: dict[str, Any] = Field(default_factory=dict)


class RenderResponse(BaseModel):
    rendered: str


# Suggestion / Apply Models
class NarrativeSuggestion(BaseModel):
    """A candidate template for a finding with its score and variables."""

    template: NarrativeTemplateResponse
    score: float = Field(..., ge=0.0, le=1.0)
    variables: dict[str, Any] = Field(default_factory=dict)


class ApplyNarrativeRequest(BaseModel):
    narrative_id: UUID
    variables: Optional[dict[str, Any]] = None
    mode: ApplyMode = ApplyMode.MANUAL
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


class FindingResponse(BaseModel):
    """Finding with its applied narrative fields."""

    id: UUID
    tenant_id: UUID
    inspection_id: Optional[UUID] = None
    section_name: Optional[str] = None
    title: str
    summary: str
    severity: Optional[str] = None
    narrative_id: Optional[UUID] = None
    narrative_text: Optional[str] = None
    variables: dict[str, Any] = Field(default_factory=dict)
    confidence: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)


# Settings Models
class NarrativeSettingsUpdate(BaseModel):
    auto_apply_narratives: Optional[bool] = None
    auto_apply_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    language: Optional[str] = Field(None, max_length=16)


class NarrativeSettingsResponse(BaseModel):
    tenant_id: UUID
    auto_apply_narratives: bool
    auto_apply_threshold: float
    language: str
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BulkImportRequest(BaseModel):
    """Raw template definitions; each row is validated by the service so
    failures can be reported per row."""

    templates: list[dict[str, Any]] = Field(..., min_length=1)


class BulkImportResponse(BaseModel):
    imported: int
