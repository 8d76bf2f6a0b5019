from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.admin_auth import AdminCheckResult, require_admin
from app.core.rate_limit import enforce_rate_limit
from app.schemas.auth import WhoAmIResponse

router = APIRouter(tags=["Auth"])


@router.get(
    "/whoami",
    response_model=WhoAmIResponse,
    dependencies=[Depends(enforce_rate_limit("API_GENERAL"))],
)
async def whoami(admin: AdminCheckResult = Depends(require_admin)) -> WhoAmIResponse:
    """Identify the calling administrator.

    Returns:
        WhoAmIResponse: id, email, metadata and role of the admin.
    """
    user = admin.user  # set by require_admin

    return WhoAmIResponse(
        id=user.id,
        email=user.email,
        user_metadata=user.user_metadata,
        role=admin.profile.role if admin.profile else None,
    )
