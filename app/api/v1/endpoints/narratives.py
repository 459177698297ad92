from typing import Annotated, List, NoReturn, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_request_context
from app.core.database import get_async_session as get_session
from app.core.exceptions import AppError, DatabaseError, NotFoundError, ValidationError
from app.database.models import NarrativeCategory, Severity
from app.schemas.auth import RequestContext
from app.schemas.common import ApiResponse
from app.schemas.narratives import (
    ApplyNarrativeRequest,
    BulkImportRequest,
    BulkImportResponse,
    ExtractVariablesRequest,
    FindingResponse,
    NarrativeSettingsResponse,
    NarrativeSettingsUpdate,
    NarrativeTemplateCreate,
    NarrativeTemplateFilters,
    NarrativeTemplateResponse,
    NarrativeTemplateUpdate,
    RenderRequest,
    RenderResponse,
)
from app.services.narratives import NarrativeService, extract_variables, render_narrative
from app.utils.logging import get_logger
from app.utils.responses import create_api_response, create_error_detail

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_narrative_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> NarrativeService:
    return NarrativeService(db_session)


def _raise_http_error(request: Request, error: AppError) -> NoReturn:
    """Translate a service error into an HTTPException carrying a problem detail."""
    if isinstance(error, NotFoundError):
        error_detail = create_error_detail(
            title=f"{error.entity} Not Found",
            status=status.HTTP_404_NOT_FOUND,
            detail=f"{error.entity} with ID {error.entity_id} not found",
            request=request,
        )
    elif isinstance(error, ValidationError):
        error_detail = create_error_detail(
            title="Validation Failed",
            status=status.HTTP_400_BAD_REQUEST,
            detail=str(error),
            request=request,
            errors=error.errors,
        )
    else:
        # DatabaseError and anything unexpected; the cause stays in the logs
        LOGGER.error(
            f"Narrative request failed: {error}",
            exc_info=error.original_error or error,
            extra={"path": request.url.path, "database": isinstance(error, DatabaseError)},
        )
        error_detail = create_error_detail(
            title="Internal Server Error",
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while processing the request",
            request=request,
        )

    raise HTTPException(status_code=error_detail.status, detail=error_detail.model_dump(mode="json"))


# --------------------------------------------------------------------------- #
# Stateless helpers
# --------------------------------------------------------------------------- #

@router.post(
    "/extract-variables",
    response_model=ApiResponse,
    summary="Extract narrative variables from finding text",
    operation_id="extract_narrative_variables",
)
async def extract_narrative_variables(
    request: Request,
    payload: ExtractVariablesRequest,
) -> ApiResponse:
    """Run variable extraction without touching any finding."""
    variables = extract_variables(
        payload.title, payload.summary, payload.section_name, payload.structured_data
    )
    return create_api_response(
        data={"variables": variables.as_template_vars()},
        message="Variables extracted successfully",
        request=request,
    )


@router.post(
    "/render",
    response_model=ApiResponse,
    summary="Render a narrative body",
    operation_id="render_narrative",
)
async def render_narrative_body(
    request: Request,
    payload: RenderRequest,
) -> ApiResponse:
    """Preview a template body with the given variables."""
    data = RenderResponse(rendered=render_narrative(payload.body, payload.variables))
    return create_api_response(data=data, message="Narrative rendered successfully", request=request)


# --------------------------------------------------------------------------- #
# Settings and bulk import (declared before /{template_id})
# --------------------------------------------------------------------------- #

@router.get(
    "/settings",
    response_model=ApiResponse,
    summary="Get narrative settings",
    operation_id="get_narrative_settings",
)
async def get_narrative_settings(
    request: Request,
    context: Annotated[RequestContext, Depends(get_request_context)],
    narrative_service: Annotated[NarrativeService, Depends(get_narrative_service)],
) -> ApiResponse:
    """Tenant settings; defaults are created on first read."""
    try:
        settings = await narrative_service.get_settings(context.tenant_id)
    except AppError as e:
        _raise_http_error(request, e)

    return create_api_response(
        data=NarrativeSettingsResponse.model_validate(settings),
        message="Narrative settings retrieved successfully",
        request=request,
    )


@router.patch(
    "/settings",
    response_model=ApiResponse,
    summary="Update narrative settings",
    operation_id="update_narrative_settings",
)
async def update_narrative_settings(
    request: Request,
    payload: NarrativeSettingsUpdate,
    context: Annotated[RequestContext, Depends(get_request_context)],
    narrative_service: Annotated[NarrativeService, Depends(get_narrative_service)],
) -> ApiResponse:
    try:
        settings = await narrative_service.update_settings(context.tenant_id, payload)
    except AppError as e:
        _raise_http_error(request, e)

    return create_api_response(
        data=NarrativeSettingsResponse.model_validate(settings),
        message="Narrative settings updated successfully",
        request=request,
    )


@router.post(
    "/bulk-import",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import narrative templates",
    operation_id="bulk_import_narratives",
)
async def bulk_import_narratives(
    request: Request,
    payload: BulkImportRequest,
    context: Annotated[RequestContext, Depends(get_request_context)],
    narrative_service: Annotated[NarrativeService, Depends(get_narrative_service)],
) -> ApiResponse:
    """Insert all definitions as new active templates, or none if any row is invalid."""
    try:
        count = await narrative_service.bulk_import(
            context.tenant_id, payload.templates, created_by=context.user_id
        )
    except AppError as e:
        _raise_http_error(request, e)

    return create_api_response(
        data=BulkImportResponse(imported=count),
        message=f"Imported {count} narrative templates",
        request=request,
    )


# --------------------------------------------------------------------------- #
# Findings
# --------------------------------------------------------------------------- #

@router.post(
    "/findings/{finding_id}/suggest",
    response_model=ApiResponse,
    summary="Suggest narratives for a finding",
    operation_id="suggest_narratives",
)
async def suggest_narratives(
    request: Request,
    finding_id: UUID,
    context: Annotated[RequestContext, Depends(get_request_context)],
    narrative_service: Annotated[NarrativeService, Depends(get_narrative_service)],
) -> ApiResponse:
    """Up to five ranked templates with the variables extracted from the finding."""
    try:
        suggestions = await narrative_service.suggest(finding_id, context.tenant_id)
    except AppError as e:
        _raise_http_error(request, e)

    return create_api_response(
        data={"suggestions": [s.model_dump(mode="json") for s in suggestions]},
        message="Narrative suggestions retrieved successfully",
        request=request,
    )


@router.post(
    "/findings/{finding_id}/apply",
    response_model=ApiResponse,
    summary="Apply a narrative to a finding",
    operation_id="apply_narrative",
)
async def apply_narrative(
    request: Request,
    finding_id: UUID,
    payload: ApplyNarrativeRequest,
    context: Annotated[RequestContext, Depends(get_request_context)],
    narrative_service: Annotated[NarrativeService, Depends(get_narrative_service)],
) -> ApiResponse:
    try:
        finding = await narrative_service.apply(
            finding_id=finding_id,
            narrative_id=payload.narrative_id,
            tenant_id=context.tenant_id,
            variables=payload.variables,
            mode=payload.mode,
            confidence=payload.confidence,
            user_id=context.user_id,
        )
    except AppError as e:
        _raise_http_error(request, e)

    return create_api_response(
        data=FindingResponse.model_validate(finding),
        message="Narrative applied successfully",
        request=request,
    )


@router.post(
    "/findings/{finding_id}/auto-apply",
    response_model=ApiResponse,
    summary="Auto-apply the best narrative to a finding",
    operation_id="auto_apply_narrative",
)
async def auto_apply_narrative(
    request: Request,
    finding_id: UUID,
    context: Annotated[RequestContext, Depends(get_request_context)],
    narrative_service: Annotated[NarrativeService, Depends(get_narrative_service)],
) -> ApiResponse:
    """Apply the top suggestion if the tenant enabled auto-apply and it clears the threshold."""
    try:
        finding = await narrative_service.auto_apply(finding_id, context.tenant_id, context.user_id)
    except AppError as e:
        _raise_http_error(request, e)

    if finding is None:
        return create_api_response(
            data={"applied": False},
            message="No narrative was auto-applied",
            request=request,
        )

    return create_api_response(
        data={"applied": True, "finding": FindingResponse.model_validate(finding).model_dump(mode="json")},
        message="Narrative auto-applied successfully",
        request=request,
    )


# --------------------------------------------------------------------------- #
# Templates
# --------------------------------------------------------------------------- #

@router.post(
    "/",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a narrative template",
    operation_id="create_narrative_template",
)
async def create_narrative_template(
    request: Request,
    payload: NarrativeTemplateCreate,
    context: Annotated[RequestContext, Depends(get_request_context)],
    narrative_service: Annotated[NarrativeService, Depends(get_narrative_service)],
) -> ApiResponse:
    try:
        template = await narrative_service.create_template(
            context.tenant_id, payload, created_by=context.user_id
        )
    except AppError as e:
        _raise_http_error(request, e)

    return create_api_response(
        data=NarrativeTemplateResponse.model_validate(template),
        message="Narrative template created successfully",
        request=request,
    )


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List narrative templates",
    operation_id="list_narrative_templates",
)
async def list_narrative_templates(
    request: Request,
    context: Annotated[RequestContext, Depends(get_request_context)],
    narrative_service: Annotated[NarrativeService, Depends(get_narrative_service)],
    search: Optional[str] = Query(None),
    category: Optional[NarrativeCategory] = Query(None),
    component: Optional[str] = Query(None),
    tags: Optional[List[str]] = Query(None),
    severity: Optional[Severity] = Query(None),
    is_active: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    filters = NarrativeTemplateFilters(
        search=search,
        category=category,
        component=component,
        tags=tags,
        severity=severity,
        is_active=is_active,
        limit=limit,
        offset=offset,
    )
    try:
        result = await narrative_service.list_templates(context.tenant_id, filters)
    except AppError as e:
        _raise_http_error(request, e)

    message = "Narrative templates retrieved successfully" if result.templates else "No narrative templates found"
    return create_api_response(data=result, message=message, request=request)


@router.get(
    "/{template_id}",
    response_model=ApiResponse,
    summary="Get a narrative template",
    operation_id="get_narrative_template",
)
async def get_narrative_template(
    request: Request,
    template_id: UUID,
    context: Annotated[RequestContext, Depends(get_request_context)],
    narrative_service: Annotated[NarrativeService, Depends(get_narrative_service)],
) -> ApiResponse:
    try:
        template = await narrative_service.get_template(template_id, context.tenant_id)
    except AppError as e:
        _raise_http_error(request, e)

    return create_api_response(
        data=NarrativeTemplateResponse.model_validate(template),
        message="Narrative template retrieved successfully",
        request=request,
    )


@router.patch(
    "/{template_id}",
    response_model=ApiResponse,
    summary="Update a narrative template",
    operation_id="update_narrative_template",
)
async def update_narrative_template(
    request: Request,
    template_id: UUID,
    payload: NarrativeTemplateUpdate,
    context: Annotated[RequestContext, Depends(get_request_context)],
    narrative_service: Annotated[NarrativeService, Depends(get_narrative_service)],
) -> ApiResponse:
    try:
        template = await narrative_service.update_template(template_id, context.tenant_id, payload)
    except AppError as e:
        _raise_http_error(request, e)

    return create_api_response(
        data=NarrativeTemplateResponse.model_validate(template),
        message="Narrative template updated successfully",
        request=request,
    )


@router.delete(
    "/{template_id}",
    response_model=ApiResponse,
    summary="Deactivate a narrative template",
    operation_id="deactivate_narrative_template",
)
async def deactivate_narrative_template(
    request: Request,
    template_id: UUID,
    context: Annotated[RequestContext, Depends(get_request_context)],
    narrative_service: Annotated[NarrativeService, Depends(get_narrative_service)],
) -> ApiResponse:
    """Soft delete: the template stops being suggested but keeps its history."""
    try:
        template = await narrative_service.deactivate_template(template_id, context.tenant_id)
    except AppError as e:
        _raise_http_error(request, e)

    return create_api_response(
        data=NarrativeTemplateResponse.model_validate(template),
        message="Narrative template deactivated successfully",
        request=request,
    )
