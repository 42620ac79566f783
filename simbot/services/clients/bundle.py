from dataclasses import dataclass, field

from simbot.services.clients.addresses import AddressesClient
from simbot.services.clients.customers import CustomersClient
from simbot.services.clients.payments import PaymentsClient
from simbot.services.clients.portabilities import PortabilitiesClient
from simbot.services.clients.products import ProductsClient
from simbot.services.clients.scraper import ScraperClient


@dataclass
class ServiceClients:
    customers: CustomersClient = field(default_factory=CustomersClient)
    addresses: AddressesClient = field(default_factory=AddressesClient)
    portabilities: PortabilitiesClient = field(default_factory=PortabilitiesClient)
    products: ProductsClient = field(default_factory=ProductsClient)
    payments: PaymentsClient = field(default_factory=PaymentsClient)
    scraper: ScraperClient = field(default_factory=ScraperClient)
