"""Request context supplied by the upstream authentication layer."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class RequestContext(BaseModel):
    """Tenant and acting user of the current request.

    Both values are set by the gateway after authentication and are
    trusted as-is.
    """

    tenant_id: UUID = Field(..., description="Tenant (inspection company) ID")
    user_id: Optional[UUID] = Field(None, description="Acting user ID, if any")
