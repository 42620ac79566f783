from simbot.schemas.services import AddressRequest, AddressResponse
from simbot.services.clients import AddressesClient
from simbot.services.tools.arguments import CreateAddressArgs
from simbot.services.tools.context import TurnContext
from simbot.services.tools.registry import ToolRegistry


def register_address_tools(registry: ToolRegistry, addresses: AddressesClient) -> None:
    @registry.tool(
        "createAddress",
        """
        Registers a new customer address. customerId comes from the customer tools;
        street and postalCode are required.
        """,
        CreateAddressArgs,
        not_found="No se pudo registrar la dirección. Verifica que todos los datos sean correctos",
        unavailable="El servicio de direcciones no está disponible en este momento",
        generic="Ocurrió un error al registrar la dirección",
    )
    def create_address(ctx: TurnContext, args: CreateAddressArgs) -> AddressResponse:
        request = AddressRequest(
            customerId=args.customerId,
            street=args.street,
            district=args.district,
            number=args.number,
            postalCode=args.postalCode,
            reference=args.reference,
            addressType="CLIENT",
        )
        return addresses.create(request)
