"""Dashboard endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor
from studycircle.auth.dependencies import get_current_actor
from studycircle.dashboard.schemas import DashboardResponse
from studycircle.dashboard.service import get_dashboard
from studycircle.database import get_session

router = APIRouter(prefix="/api/v1", tags=["Dashboard"])


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> DashboardResponse:
    """Platform totals, recent questions and public groups, and the caller's points."""
    return DashboardResponse.model_validate(await get_dashboard(db, actor.user_id), from_attributes=True)
