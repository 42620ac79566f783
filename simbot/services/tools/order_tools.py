import re
from typing import List, Optional

from simbot.schemas.services import (
    ByPhoneNumberRequest,
    ImeiRequest,
    OrderRequest,
    OrderResponse,
    PortabilityNipRequest,
    PortabilityRequest,
    PortabilityResponse,
    SimCardResponse,
)
from simbot.services import conversation_service
from simbot.services.clients import PortabilitiesClient, ProductsClient, ServiceError
from simbot.services.tools.arguments import (
    CreateOrderArgs,
    CreatePortabilityOrderArgs,
    CustomerIdArgs,
    OrderIdArgs,
    UpdateImeiArgs,
    UpdateNipArgs,
)
from simbot.services.tools.context import TurnContext
from simbot.services.tools.exceptions import ToolExecutionError
from simbot.services.tools.registry import ToolRegistry

PORTABILITY_PHONE_PATTERN = re.compile(r"^[0-9]{10,15}$")

ORDER_NOTES = """
        customerId: REQUIRED, from registerCustomer or getCustomerByPhoneNumber. Never a hardcoded value like 1.
        productId: REQUIRED, from the products list.
        addressId: REQUIRED, from createAddress.
        checkoutId: MUST BE NULL, the checkout session is created after the order.
        The order must be created BEFORE the checkout session.
"""


def _order_request(args: CreateOrderArgs) -> OrderRequest:
    return OrderRequest(
        customerId=args.customerId,
        productId=args.productId,
        addressId=args.addressId,
        checkoutId=args.checkoutId,
    )


def _portability_id(ctx: TurnContext, explicit: Optional[int], tool_name: str) -> int:
    if explicit is not None:
        return explicit
    stored = conversation_service.get_context_data(ctx.db, ctx.conversation_id, "portability_id")
    if isinstance(stored, int) and not isinstance(stored, bool):
        return stored
    raise ToolExecutionError(
        tool_name,
        "No hay una portabilidad registrada para actualizar",
        "portabilityId missing in arguments and context",
    )


def register_order_tools(
    registry: ToolRegistry, portabilities: PortabilitiesClient, products: ProductsClient
) -> None:
    @registry.tool(
        "createNewOrderForSimCardPurchase",
        "Creates a new order for a SIM card purchase." + ORDER_NOTES,
        CreateOrderArgs,
        not_found="No se pudo crear la orden. Verifica que todos los datos sean correctos",
        unavailable="El servicio de órdenes no está disponible en este momento",
        generic="Ocurrió un error al crear la orden",
    )
    def create_new_order(ctx: TurnContext, args: CreateOrderArgs) -> OrderResponse:
        return portabilities.create_order(_order_request(args))

    @registry.tool(
        "createOrderForSimCardPortabilityPurchase",
        "When the selected product needs a portability, creates the order and the portability for it."
        + ORDER_NOTES
        + "        phoneNumber: REQUIRED, the number to port (10 to 15 digits).\n",
        CreatePortabilityOrderArgs,
        not_found="No se pudo crear la orden. Verifica que todos los datos sean correctos",
        unavailable="El servicio de portabilidad no está disponible en este momento",
        generic="Ocurrió un error al crear la orden con portabilidad",
    )
    def create_portability_order(ctx: TurnContext, args: CreatePortabilityOrderArgs) -> OrderResponse:
        phone_number = (args.phoneNumber or "").strip()
        if not PORTABILITY_PHONE_PATTERN.match(phone_number):
            raise ToolExecutionError(
                "createOrderForSimCardPortabilityPurchase",
                "El número de teléfono debe tener entre 10 y 15 dígitos",
                f"Invalid phone number length: {len(phone_number) if args.phoneNumber is not None else 'null'}",
            )

        order = portabilities.create_order(_order_request(args))
        try:
            portabilities.create_portability(PortabilityRequest(phoneNumber=phone_number, orderId=order.id))
        except ServiceError as e:
            raise ToolExecutionError(
                "createOrderForSimCardPortabilityPurchase",
                "La orden se creó pero no se pudo procesar la portabilidad. "
                "El número podría estar ya en proceso de portabilidad",
                f"Portability creation failed for order {order.id}: {e}",
            ) from e
        return order

    @registry.tool(
        "getOrdersByOrderId",
        "Get order information by order id (UUID string format)",
        OrderIdArgs,
        not_found="No se encontró una orden con ese ID",
        unavailable="El servicio de órdenes no está disponible en este momento",
        generic="Ocurrió un error al buscar la orden",
    )
    def get_order_by_id(ctx: TurnContext, args: OrderIdArgs) -> OrderResponse:
        return portabilities.get_order(args.id)

    @registry.tool(
        "getOrdersByCustomerId",
        "Get orders information by customer id",
        CustomerIdArgs,
        not_found="No se encontraron órdenes para ese cliente",
        unavailable="El servicio de órdenes no está disponible en este momento",
        generic="Ocurrió un error al buscar las órdenes del cliente",
    )
    def get_orders_by_customer_id(ctx: TurnContext, args: CustomerIdArgs) -> List[OrderResponse]:
        return portabilities.get_orders_by_customer(args.customerId)

    @registry.tool(
        "getPortabilityByPhoneNumber",
        "Get portability information by phone number: portability id, order id and status",
        ByPhoneNumberRequest,
        not_found="No se encontró información de portabilidad para ese número",
        unavailable="El servicio de portabilidad no está disponible en este momento",
        generic="Ocurrió un error al buscar la portabilidad",
    )
    def get_portability_by_phone(ctx: TurnContext, args: ByPhoneNumberRequest) -> PortabilityResponse:
        return portabilities.get_portability_by_phone(args)

    @registry.tool(
        "updateImei",
        "Register the device IMEI on the customer's portability",
        UpdateImeiArgs,
        not_found="No se encontró la portabilidad a actualizar",
        unavailable="El servicio de portabilidad no está disponible en este momento",
        generic="Ocurrió un error al registrar el IMEI",
    )
    def update_imei(ctx: TurnContext, args: UpdateImeiArgs) -> PortabilityResponse:
        portability_id = _portability_id(ctx, args.portabilityId, "updateImei")
        return portabilities.update_imei(portability_id, ImeiRequest(imei=args.imei))

    @registry.tool(
        "updatePortabilityNip",
        "Register the portability NIP the customer received from their current carrier",
        UpdateNipArgs,
        not_found="No se encontró la portabilidad a actualizar",
        unavailable="El servicio de portabilidad no está disponible en este momento",
        generic="Ocurrió un error al registrar el NIP",
    )
    def update_nip(ctx: TurnContext, args: UpdateNipArgs) -> PortabilityResponse:
        portability_id = _portability_id(ctx, args.portabilityId, "updatePortabilityNip")
        return portabilities.update_nip(portability_id, PortabilityNipRequest(nip=args.nip))

    @registry.tool(
        "getSimIcc",
        """
        Get the SIM ICC (Integrated Circuit Card Identifier) for a portability request.
        id: the order ID associated with the portability; the SIM card is looked up from it.
        """,
        OrderIdArgs,
        not_found="No se encontró una orden con ese ID",
        unavailable="El servicio de portabilidad no está disponible en este momento",
        generic="Ocurrió un error al obtener el ICC de la SIM",
    )
    def get_sim_icc(ctx: TurnContext, args: OrderIdArgs) -> SimCardResponse:
        order = portabilities.get_order(args.id)
        if order.simId is None:
            raise ToolExecutionError(
                "getSimIcc", "No se encontró una tarjeta SIM con ese ID", f"Order {order.id} has no SIM assigned"
            )
        return products.get_sim_card(order.simId)
