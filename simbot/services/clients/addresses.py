from typing import List

from simbot.config import settings
from simbot.schemas.services import AddressRequest, AddressResponse
from simbot.services.clients.base import ServiceClient


class AddressesClient(ServiceClient):
    service_name = "addresses"

    def __init__(self, base_url: str = settings.addresses_service_url, **kwargs):
        super().__init__(base_url, **kwargs)

    def create(self, request: AddressRequest) -> AddressResponse:
        return self._request_model(AddressResponse, "POST", "/api/addresses", request)

    def get(self, address_id: int) -> AddressResponse:
        return self._request_model(AddressResponse, "GET", f"/api/addresses/{address_id}")

    def update(self, address_id: int, request: AddressRequest) -> AddressResponse:
        return self._request_model(AddressResponse, "PUT", f"/api/addresses/{address_id}", request)

    def get_by_customer(self, customer_id: int) -> List[AddressResponse]:
        return self._request_list(AddressResponse, "GET", f"/api/addresses/customer/{customer_id}")
