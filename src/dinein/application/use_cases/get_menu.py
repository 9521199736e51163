from __future__ import annotations

from dinein.application.dto.responses import MenuResponse
from dinein.application.mappers.menu_mapper import to_guest_menu_response
from dinein.application.ports.repositories import MenuRepository
from dinein.domain.common.errors import NotFoundError
from dinein.domain.common.ids import RestaurantId


class GetMenu:
    def __init__(self, repository: MenuRepository) -> None:
        self._repository = repository

    def execute(self, restaurant_id: RestaurantId) -> MenuResponse:
        menu = self._repository.get_menu_by_restaurant_id(restaurant_id)
        if menu is None:
            raise NotFoundError(
                f"menu not found for restaurant_id={restaurant_id}",
                restaurant_id=restaurant_id,
            )
        return to_guest_menu_response(menu)
