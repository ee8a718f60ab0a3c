from typing import Optional

from fastapi import APIRouter, Depends

from auth import get_current_user
from helpers import api_response
from pipelines import Pagination, pagination_params, sort_params
from routers.videos import SORTABLE_FIELDS
from views import ViewBuilder, get_view_builder

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats")
def channel_stats(current_user: dict = Depends(get_current_user), views: ViewBuilder = Depends(get_view_builder)):
    return api_response(views.channel_stats(current_user["_id"]), "Channel stats fetched successfully")


@router.get("/videos")
def channel_videos(
    sort_by: Optional[str] = None,
    sort_type: Optional[str] = None,
    pagination: Pagination = Depends(pagination_params),
    current_user: dict = Depends(get_current_user),
    views: ViewBuilder = Depends(get_view_builder),
):
    sort = sort_params(sort_by, sort_type, SORTABLE_FIELDS)
    page = views.owner_joined_page("video", {"owner": current_user["_id"]}, pagination, sort)
    return api_response(page, "Channel videos fetched successfully")
