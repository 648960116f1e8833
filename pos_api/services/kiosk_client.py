"""
Kiosk API Client

Async HTTP client used by kiosk front-ends and scripts to read the
catalogue and submit an OrderBuilder to the POS API.

Usage:
    async with KioskClient() as kiosk:
        meal_types = await kiosk.get_meal_types()
        ...
        submitted = await kiosk.submit(builder)
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from pos_api.core.config import get_settings
from pos_api.schemas import MealTypeResponse, MenuItemResponse
from pos_api.services.cart import OrderBuilder

logger = logging.getLogger(__name__)


class OrderSubmissionError(Exception):
    """The API refused or failed to create the order."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class SubmittedOrder:
    """Id and server-computed price of an accepted order."""
    order_id: int
    price: float


class KioskClient:
    """Thin wrapper over httpx.AsyncClient for the kiosk endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url or get_settings().kiosk_api_url,
            timeout=timeout,
        )

    async def __aenter__(self) -> "KioskClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def get_meal_types(self) -> list[MealTypeResponse]:
        response = await self.client.get("/api/meal-types")
        response.raise_for_status()
        return [MealTypeResponse.model_validate(row) for row in response.json()]

    async def get_menu_items(self, available_only: bool = True) -> list[MenuItemResponse]:
        params = {"is_available": "true"} if available_only else None
        response = await self.client.get("/api/menu-items", params=params)
        response.raise_for_status()
        return [MenuItemResponse.model_validate(row) for row in response.json()]

    async def submit(
        self,
        builder: OrderBuilder,
        staff_id: Optional[int] = None,
        customer_name: Optional[str] = None,
    ) -> SubmittedOrder:
        """
        Submit the builder's order and clear it on success.

        Returns:
            The new order id and the price the server charged

        Raises:
            OrderSubmissionError: Non-201 response or transport failure
        """
        payload = builder.to_payload(staff_id=staff_id, customer_name=customer_name)

        try:
            response = await self.client.post("/api/orders", json=payload)
        except httpx.HTTPError as e:
            raise OrderSubmissionError(f"Could not reach order service: {e}") from e

        if response.status_code != 201:
            try:
                message = response.json().get("error") or response.text
            except ValueError:
                message = response.text
            logger.warning(f"Order rejected ({response.status_code}): {message}")
            raise OrderSubmissionError(message, status_code=response.status_code)

        data = response.json()["data"]
        submitted = SubmittedOrder(order_id=data["orderId"], price=data["price"])
        logger.info(f"Order #{submitted.order_id} submitted ({builder.item_count} meal(s))")
        builder.clear()
        return submitted
