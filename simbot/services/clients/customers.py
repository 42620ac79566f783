from simbot.config import settings
from simbot.schemas.services import ByEmailRequest, ByPhoneNumberRequest, CustomerRequest, CustomerResponse
from simbot.services.clients.base import ServiceClient


class CustomersClient(ServiceClient):
    service_name = "customers"

    def __init__(self, base_url: str = settings.customers_service_url, **kwargs):
        super().__init__(base_url, **kwargs)

    def register(self, request: CustomerRequest) -> CustomerResponse:
        return self._request_model(CustomerResponse, "POST", "/api/customer/register", request)

    def get_by_id(self, customer_id: int) -> CustomerResponse:
        return self._request_model(CustomerResponse, "GET", f"/api/customers/{customer_id}")

    def get_by_email(self, request: ByEmailRequest) -> CustomerResponse:
        return self._request_model(CustomerResponse, "POST", "/api/customers/by-email", request)

    def get_by_phone_number(self, request: ByPhoneNumberRequest) -> CustomerResponse:
        return self._request_model(CustomerResponse, "POST", "/api/customers/by-phone", request)
