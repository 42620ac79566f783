from simbot.config import settings
from simbot.schemas.services import (
    ScrapePortabilityRequest,
    ScrapePortabilityResponse,
    ScrapeRequest,
    ScrapeResponse,
)
from simbot.services.clients.base import ServiceClient


class ScraperClient(ServiceClient):
    service_name = "scraper"

    def __init__(self, base_url: str = settings.scraper_service_url, **kwargs):
        super().__init__(base_url, **kwargs)

    def scrape_compatibility(self, request: ScrapeRequest) -> ScrapeResponse:
        return self._request_model(ScrapeResponse, "POST", "/api/scrape-compatibility", request)

    def scrape_portability(self, request: ScrapePortabilityRequest) -> ScrapePortabilityResponse:
        return self._request_model(ScrapePortabilityResponse, "POST", "/api/scrape-portability", request)
