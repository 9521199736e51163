from __future__ import annotations

from fastapi import APIRouter, Header, Response

from dinein.api import dependencies as deps
from dinein.application.dto.responses import MenuResponse
from dinein.application.use_cases.get_menu import GetMenu
from dinein.domain.common.ids import RestaurantId

router = APIRouter()


@router.get("/v1/restaurants/{restaurant_id}/menu", response_model=MenuResponse)
def get_menu(
    restaurant_id: str,
    response: Response,
    if_none_match: str | None = Header(default=None, alias="If-None-Match"),
) -> MenuResponse | Response:
    payload = GetMenu(repository=deps.menu_repository()).execute(RestaurantId(restaurant_id))

    etag = f'"menu-v{payload.menuVersion}"'
    if if_none_match == etag:
        return Response(status_code=304, headers={"ETag": etag})

    response.headers["ETag"] = etag
    return payload
