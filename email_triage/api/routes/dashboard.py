from fastapi import APIRouter, Depends, Query

from ..deps import Services, get_current_user, get_services

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/brief")
def daily_brief(
    time_of_day: str = Query("morning", alias="timeOfDay"),
    force_refresh: bool = Query(False, alias="forceRefresh"),
    user_id: str = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    brief = services.briefs.get_brief(user_id, time_of_day=time_of_day, force_refresh=force_refresh)
    return dict(brief, success=True)
