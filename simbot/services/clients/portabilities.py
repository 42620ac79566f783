from typing import List

from simbot.config import settings
from simbot.schemas.services import (
    ByPhoneNumberRequest,
    ImeiRequest,
    OrderRequest,
    OrderResponse,
    PortabilityNipRequest,
    PortabilityRequest,
    PortabilityResponse,
)
from simbot.services.clients.base import ServiceClient


class PortabilitiesClient(ServiceClient):
    """Orders and portability requests live in the same service."""

    service_name = "portabilities"

    def __init__(self, base_url: str = settings.portabilities_service_url, **kwargs):
        super().__init__(base_url, **kwargs)

    def create_order(self, request: OrderRequest) -> OrderResponse:
        return self._request_model(OrderResponse, "POST", "/api/orders", request)

    def get_order(self, order_id: str) -> OrderResponse:
        return self._request_model(OrderResponse, "GET", f"/api/orders/{order_id}")

    def get_orders_by_customer(self, customer_id: int) -> List[OrderResponse]:
        return self._request_list(OrderResponse, "GET", f"/api/orders/customer/{customer_id}")

    def update_checkout_id(self, order_id: str, checkout_id: int) -> OrderResponse:
        return self._request_model(OrderResponse, "PATCH", f"/api/orders/{order_id}/checkout/{checkout_id}")

    def create_portability(self, request: PortabilityRequest) -> PortabilityResponse:
        return self._request_model(PortabilityResponse, "POST", "/api/portabilities", request)

    def get_portability_by_phone(self, request: ByPhoneNumberRequest) -> PortabilityResponse:
        return self._request_model(PortabilityResponse, "POST", "/api/portabilities/by-phone", request)

    def update_imei(self, portability_id: int, request: ImeiRequest) -> PortabilityResponse:
        return self._request_model(PortabilityResponse, "PATCH", f"/api/portabilities/{portability_id}/imei", request)

    def update_nip(self, portability_id: int, request: PortabilityNipRequest) -> PortabilityResponse:
        return self._request_model(PortabilityResponse, "PATCH", f"/api/portabilities/{portability_id}/nip", request)
