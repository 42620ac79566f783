from simbot.services.clients.addresses import AddressesClient
from simbot.services.clients.base import ServiceClient, ServiceError
from simbot.services.clients.bundle import ServiceClients
from simbot.services.clients.customers import CustomersClient
from simbot.services.clients.payments import PaymentsClient
from simbot.services.clients.portabilities import PortabilitiesClient
from simbot.services.clients.products import ProductsClient
from simbot.services.clients.scraper import ScraperClient

__all__ = [
    "AddressesClient",
    "CustomersClient",
    "PaymentsClient",
    "PortabilitiesClient",
    "ProductsClient",
    "ScraperClient",
    "ServiceClient",
    "ServiceClients",
    "ServiceError",
]
