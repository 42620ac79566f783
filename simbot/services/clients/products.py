from simbot.config import settings
from simbot.schemas.services import SimCardResponse
from simbot.services.clients.base import ServiceClient


class ProductsClient(ServiceClient):
    service_name = "products"

    def __init__(self, base_url: str = settings.products_service_url, **kwargs):
        super().__init__(base_url, **kwargs)

    def get_sim_card(self, sim_id: int) -> SimCardResponse:
        return self._request_model(SimCardResponse, "GET", f"/api/simcards/{sim_id}")
