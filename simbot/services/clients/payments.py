from simbot.config import settings
from simbot.schemas.services import CheckoutSessionRequest, CheckoutSessionResponse
from simbot.services.clients.base import ServiceClient


class PaymentsClient(ServiceClient):
    service_name = "payments"

    def __init__(self, base_url: str = settings.payments_service_url, **kwargs):
        super().__init__(base_url, **kwargs)

    def create_checkout_session(self, request: CheckoutSessionRequest) -> CheckoutSessionResponse:
        return self._request_model(CheckoutSessionResponse, "POST", "/api/checkout-sessions", request)
