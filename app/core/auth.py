"""Request context dependencies for FastAPI routes.

Authentication happens upstream; the gateway forwards the tenant and the
acting user as headers, which this module turns into a RequestContext.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Header

from app.schemas.auth import RequestContext
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


async def get_request_context(
    x_tenant_id: Annotated[UUID, Header(description="Tenant owning the request")],
    x_user_id: Annotated[Optional[UUID], Header(description="Acting user, if any")] = None,
) -> RequestContext:
    """Build the request context from gateway headers.

    A missing or malformed ``X-Tenant-Id`` header is rejected by FastAPI's
    request validation before this runs.

    Returns:
        RequestContext: Tenant and optional user of the request
    """
    return RequestContext(tenant_id=x_tenant_id, user_id=x_user_id)
