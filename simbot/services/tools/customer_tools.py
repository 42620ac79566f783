from simbot.schemas.services import ByEmailRequest, ByPhoneNumberRequest, CustomerRequest, CustomerResponse
from simbot.services.clients import CustomersClient
from simbot.services.tools.arguments import CustomerIdArgs
from simbot.services.tools.context import TurnContext
from simbot.services.tools.registry import ToolRegistry


def register_customer_tools(registry: ToolRegistry, customers: CustomersClient) -> None:
    @registry.tool(
        "registerCustomer",
        """
        Registers a new customer with firstName, lastName, email and phoneNumber.
        Returns the registered customer: id, firstName, lastName, email, phoneNumber.
        """,
        CustomerRequest,
        not_found="No se pudo registrar el cliente. Verifica que el email o teléfono no estén ya registrados",
        unavailable="El servicio de registro no está disponible en este momento",
        generic="Ocurrió un error al registrar el cliente",
    )
    def register_customer(ctx: TurnContext, args: CustomerRequest) -> CustomerResponse:
        return customers.register(args)

    @registry.tool(
        "getCustomerById",
        "Get a customer information by their id",
        CustomerIdArgs,
        not_found="No se encontró un cliente con ese ID",
        unavailable="El servicio de clientes no está disponible en este momento",
        generic="Ocurrió un error al buscar el cliente",
    )
    def get_customer_by_id(ctx: TurnContext, args: CustomerIdArgs) -> CustomerResponse:
        return customers.get_by_id(args.customerId)

    @registry.tool(
        "getCustomerByEmail",
        "Get a customer information with their email",
        ByEmailRequest,
        not_found="No se encontró un cliente con ese email",
        unavailable="El servicio de clientes no está disponible en este momento",
        generic="Ocurrió un error al buscar el cliente por email",
    )
    def get_customer_by_email(ctx: TurnContext, args: ByEmailRequest) -> CustomerResponse:
        return customers.get_by_email(args)

    @registry.tool(
        "getCustomerByPhoneNumber",
        """
        Get a customer information with their phone number, to know if they are
        registered instead of asking. A "not found" error means the customer is
        not registered yet.
        """,
        ByPhoneNumberRequest,
        not_found="No se encontró un cliente con ese número de teléfono",
        unavailable="El servicio de clientes no está disponible en este momento. Por favor intenta nuevamente.",
        generic="Ocurrió un error inesperado al buscar el cliente por teléfono",
    )
    def get_customer_by_phone_number(ctx: TurnContext, args: ByPhoneNumberRequest) -> CustomerResponse:
        return customers.get_by_phone_number(args)
