from simbot.config import settings
from simbot.schemas.services import CheckoutSessionRequest, CheckoutSessionResponse
from simbot.services.clients import PaymentsClient
from simbot.services.tools.arguments import CheckoutSessionArgs
from simbot.services.tools.context import TurnContext
from simbot.services.tools.exceptions import ToolExecutionError
from simbot.services.tools.registry import ToolRegistry

TOOL_NAME = "Create_checkout_session"


def register_payment_tools(registry: ToolRegistry, payments: PaymentsClient) -> None:
    @registry.tool(
        TOOL_NAME,
        """
        Create a Stripe checkout session for the order. Call it AFTER creating the order.
        payment_link_id: payment link of the product being purchased.
        customer_id: the same customer ID used to create the order.
        order_id: the order ID returned by the order creation tool.
        Returns stripe_session_url, which must be given to the customer, and checkout_session_id.
        """,
        CheckoutSessionArgs,
        not_found="No se pudo crear la sesión de pago. Verifica que los datos sean correctos",
        unavailable="El servicio de pagos no está disponible en este momento",
        generic="Ocurrió un error al crear la sesión de pago",
    )
    def create_checkout_session(ctx: TurnContext, args: CheckoutSessionArgs) -> CheckoutSessionResponse:
        if args.payment_link_id is None or args.payment_link_id <= 0:
            raise ToolExecutionError(
                TOOL_NAME,
                "Se requiere un ID de enlace de pago válido",
                f"payment_link_id is invalid: {args.payment_link_id}",
            )
        if args.customer_id is None:
            raise ToolExecutionError(
                TOOL_NAME, "Se requiere el ID del cliente para crear la sesión de pago", "customer_id is null"
            )
        if not args.order_id:
            raise ToolExecutionError(
                TOOL_NAME, "Se requiere el ID de la orden para crear la sesión de pago", "order_id is null"
            )

        request = CheckoutSessionRequest(
            payment_link_id=args.payment_link_id,
            customer_id=args.customer_id,
            order_id=args.order_id,
            success_url=settings.checkout_success_url,
            cancel_url=settings.checkout_cancel_url,
        )
        return payments.create_checkout_session(request)
