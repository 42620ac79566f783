from typing import Optional

from simbot.services.clients import ServiceClients
from simbot.services.tools.address_tools import register_address_tools
from simbot.services.tools.context import TurnContext
from simbot.services.tools.customer_tools import register_customer_tools
from simbot.services.tools.exceptions import ToolExecutionError
from simbot.services.tools.order_tools import register_order_tools
from simbot.services.tools.payment_tools import register_payment_tools
from simbot.services.tools.registry import ToolRegistry, serialize_tool_result
from simbot.services.tools.scraper_tools import register_scraper_tools


def build_tool_registry(clients: Optional[ServiceClients] = None) -> ToolRegistry:
    """Registry with the full tool set offered to the model."""
    clients = clients or ServiceClients()
    registry = ToolRegistry()
    register_customer_tools(registry, clients.customers)
    register_address_tools(registry, clients.addresses)
    register_order_tools(registry, clients.portabilities, clients.products)
    register_payment_tools(registry, clients.payments)
    register_scraper_tools(registry, clients.scraper)
    return registry


__all__ = ["ToolExecutionError", "ToolRegistry", "TurnContext", "build_tool_registry", "serialize_tool_result"]
