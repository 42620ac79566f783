import base64
import json
from unittest.mock import Mock

import httpx
import pytest

from simbot.schemas.services import (
    CheckoutSessionResponse,
    CustomerResponse,
    OrderResponse,
    PortabilityResponse,
    ScrapePortabilityResponse,
    SimCardResponse,
)
from simbot.services import conversation_service
from simbot.services.clients import CustomersClient, ServiceClients, ServiceError
from simbot.services.context_data_manager import ContextDataManager
from simbot.services.encryption import SensitiveDataEncryptor
from simbot.services.tools import ToolExecutionError, TurnContext, build_tool_registry, serialize_tool_result
from simbot.services.tools.wrappers import INVALID_ARGUMENTS_MESSAGE

CONV = "525512345678"

EXPECTED_TOOLS = {
    "registerCustomer",
    "getCustomerById",
    "getCustomerByEmail",
    "getCustomerByPhoneNumber",
    "createAddress",
    "createNewOrderForSimCardPurchase",
    "createOrderForSimCardPortabilityPurchase",
    "getOrdersByOrderId",
    "getOrdersByCustomerId",
    "getPortabilityByPhoneNumber",
    "updateImei",
    "updatePortabilityNip",
    "getSimIcc",
    "Create_checkout_session",
    "scrapeImeiCompatibility",
    "scrapePortability",
}


@pytest.fixture
def clients():
    return ServiceClients(
        customers=Mock(),
        addresses=Mock(),
        portabilities=Mock(),
        products=Mock(),
        payments=Mock(),
        scraper=Mock(),
    )


@pytest.fixture
def registry(clients):
    return build_tool_registry(clients)


@pytest.fixture
def ctx(db):
    manager = ContextDataManager(SensitiveDataEncryptor(base64.b64encode(b"k" * 32).decode()))
    return TurnContext(db=db, conversation_id=CONV, context_manager=manager)


class TestRegistry:
    def test_all_tools_registered(self, registry):
        assert set(registry.names()) == EXPECTED_TOOLS

    def test_openai_schemas(self, registry):
        schemas = {s["function"]["name"]: s for s in registry.openai_schemas()}
        address = schemas["createAddress"]
        assert address["type"] == "function"
        assert set(address["function"]["parameters"]["required"]) == {"customerId", "street", "postalCode"}

    def test_unknown_tool(self, registry, ctx):
        with pytest.raises(ToolExecutionError) as exc_info:
            registry.execute(ctx, "deleteEverything", {})
        assert exc_info.value.tool_name == "deleteEverything"

    def test_malformed_json_arguments(self, registry, ctx):
        with pytest.raises(ToolExecutionError) as exc_info:
            registry.execute(ctx, "getCustomerById", "{not json")
        assert exc_info.value.user_message == INVALID_ARGUMENTS_MESSAGE

    def test_invalid_arguments(self, registry, ctx, clients):
        with pytest.raises(ToolExecutionError) as exc_info:
            registry.execute(ctx, "createAddress", {"customerId": 1, "street": "x" * 300, "postalCode": "06000"})
        assert exc_info.value.user_message == INVALID_ARGUMENTS_MESSAGE
        clients.addresses.create.assert_not_called()


class TestErrorNormalization:
    def test_not_found(self, registry, ctx, clients):
        clients.customers.get_by_phone_number.side_effect = ServiceError("customers", 404, "missing")
        with pytest.raises(ToolExecutionError) as exc_info:
            registry.execute(ctx, "getCustomerByPhoneNumber", json.dumps({"phoneNumber": CONV}))
        assert exc_info.value.user_message == "No se encontró un cliente con ese número de teléfono"

    def test_service_unavailable(self, registry, ctx, clients):
        clients.customers.get_by_id.side_effect = ServiceError("customers", None, "refused")
        with pytest.raises(ToolExecutionError) as exc_info:
            registry.execute(ctx, "getCustomerById", {"customerId": 1})
        assert exc_info.value.user_message == "El servicio de clientes no está disponible en este momento"

    def test_malformed_service_reply_is_unavailable(self, ctx, clients):
        clients.customers = CustomersClient(
            "http://customers",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"unexpected": True})),
        )
        with pytest.raises(ToolExecutionError) as exc_info:
            build_tool_registry(clients).execute(ctx, "getCustomerById", '{"customerId": 1}')
        assert exc_info.value.user_message == "El servicio de clientes no está disponible en este momento"
        assert INVALID_ARGUMENTS_MESSAGE not in exc_info.value.message_for_user()

    def test_unexpected_error(self, registry, ctx, clients):
        clients.addresses.create.side_effect = KeyError("boom")
        with pytest.raises(ToolExecutionError) as exc_info:
            registry.execute(ctx, "createAddress", {"customerId": 1, "street": "Reforma", "postalCode": "06000"})
        assert exc_info.value.user_message == "Ocurrió un error al registrar la dirección"

    def test_failed_call_stores_nothing(self, registry, ctx, clients, db):
        clients.customers.get_by_id.side_effect = ServiceError("customers", 500, "down")
        with pytest.raises(ToolExecutionError):
            registry.execute(ctx, "getCustomerById", {"customerId": 1})
        assert conversation_service.get_all_context_data(db, CONV) == {}

    def test_message_for_user(self):
        error = ToolExecutionError("createAddress", "Falta la calle")
        assert error.message_for_user() == (
            "La operación 'createAddress' no pudo completarse: Falta la calle. "
            "Por favor, verifica los datos e intenta nuevamente."
        )


class TestContextStorage:
    def test_success_stores_context(self, registry, ctx, clients, db):
        clients.customers.get_by_phone_number.return_value = CustomerResponse(id=42, firstName="Ana", lastName="López")
        result = registry.execute(ctx, "getCustomerByPhoneNumber", {"phoneNumber": CONV})
        assert result.id == 42
        assert conversation_service.get_context_data(db, CONV, "customer_id") == 42

    def test_released_context_stores_nothing(self, registry, ctx, clients, db):
        clients.customers.get_by_id.return_value = CustomerResponse(id=42)
        ctx.release()
        registry.execute(ctx, "getCustomerById", {"customerId": 42})
        assert conversation_service.get_all_context_data(db, CONV) == {}


class TestOrderTools:
    def test_new_order(self, registry, ctx, clients):
        clients.portabilities.create_order.return_value = OrderResponse(id="o-1", productId=3)
        registry.execute(ctx, "createNewOrderForSimCardPurchase", {"customerId": 1, "productId": 3, "addressId": 7})
        request = clients.portabilities.create_order.call_args.args[0]
        assert (request.customerId, request.productId, request.addressId, request.checkoutId) == (1, 3, 7, None)

    def test_portability_order_validates_phone_first(self, registry, ctx, clients):
        with pytest.raises(ToolExecutionError) as exc_info:
            registry.execute(
                ctx,
                "createOrderForSimCardPortabilityPurchase",
                {"customerId": 1, "productId": 3, "phoneNumber": "12345"},
            )
        assert "entre 10 y 15 dígitos" in exc_info.value.user_message
        clients.portabilities.create_order.assert_not_called()

    def test_portability_order_creates_both(self, registry, ctx, clients, db):
        clients.portabilities.create_order.return_value = OrderResponse(id="o-1")
        registry.execute(
            ctx,
            "createOrderForSimCardPortabilityPurchase",
            {"customerId": 1, "productId": 3, "phoneNumber": "5512345678"},
        )
        portability_request = clients.portabilities.create_portability.call_args.args[0]
        assert portability_request.phoneNumber == "5512345678"
        assert portability_request.orderId == "o-1"
        assert conversation_service.get_context_data(db, CONV, "order_id") == "o-1"

    def test_portability_failure_after_order(self, registry, ctx, clients):
        clients.portabilities.create_order.return_value = OrderResponse(id="o-1")
        clients.portabilities.create_portability.side_effect = ServiceError("portabilities", 409, "exists")
        with pytest.raises(ToolExecutionError) as exc_info:
            registry.execute(
                ctx,
                "createOrderForSimCardPortabilityPurchase",
                {"customerId": 1, "productId": 3, "phoneNumber": "5512345678"},
            )
        assert exc_info.value.user_message.startswith("La orden se creó pero no se pudo procesar la portabilidad")

    def test_update_nip_uses_portability_from_context(self, registry, ctx, clients, db):
        conversation_service.store_context_data(db, CONV, "portability_id", 5)
        clients.portabilities.update_nip.return_value = PortabilityResponse(id=5, portabilityNip="1234")

        registry.execute(ctx, "updatePortabilityNip", {"nip": "1234"})

        assert clients.portabilities.update_nip.call_args.args[0] == 5
        stored = conversation_service.get_context_data(db, CONV, "portability_nip")
        assert stored and stored != "1234"
        assert ctx.context_manager.get_decrypted_portability_nip(db, CONV) == "1234"

    def test_update_imei_without_portability(self, registry, ctx, clients):
        with pytest.raises(ToolExecutionError) as exc_info:
            registry.execute(ctx, "updateImei", {"imei": "356938035643809"})
        assert exc_info.value.user_message == "No hay una portabilidad registrada para actualizar"
        clients.portabilities.update_imei.assert_not_called()

    def test_sim_icc(self, registry, ctx, clients, db):
        clients.portabilities.get_order.return_value = OrderResponse(id="o-1", simId=9)
        clients.products.get_sim_card.return_value = SimCardResponse(id=9, icc="8952000000000000001")

        result = registry.execute(ctx, "getSimIcc", {"id": "o-1"})

        assert result.icc == "8952000000000000001"
        clients.products.get_sim_card.assert_called_once_with(9)
        assert ctx.context_manager.get_decrypted_sim_icc(db, CONV) == "8952000000000000001"

    def test_sim_icc_without_sim(self, registry, ctx, clients):
        clients.portabilities.get_order.return_value = OrderResponse(id="o-1")
        with pytest.raises(ToolExecutionError) as exc_info:
            registry.execute(ctx, "getSimIcc", {"id": "o-1"})
        assert exc_info.value.user_message == "No se encontró una tarjeta SIM con ese ID"


class TestPaymentTools:
    def test_requires_payment_link(self, registry, ctx, clients):
        with pytest.raises(ToolExecutionError) as exc_info:
            registry.execute(ctx, "Create_checkout_session", {"customer_id": 1, "order_id": "o-1"})
        assert exc_info.value.user_message == "Se requiere un ID de enlace de pago válido"
        clients.payments.create_checkout_session.assert_not_called()

    def test_creates_session(self, registry, ctx, clients, db):
        clients.payments.create_checkout_session.return_value = CheckoutSessionResponse(
            stripe_session_url="https://checkout.stripe.com/c/pay/cs_1", checkout_session_id="cs_1"
        )
        registry.execute(ctx, "Create_checkout_session", {"payment_link_id": 3, "customer_id": 1, "order_id": "o-1"})

        request = clients.payments.create_checkout_session.call_args.args[0]
        assert request.success_url and request.cancel_url
        assert conversation_service.get_context_data(db, CONV, "checkout_session_id") == "cs_1"
        assert ctx.context_manager.get_decrypted_checkout_url(db, CONV) == "https://checkout.stripe.com/c/pay/cs_1"


class TestScraperTools:
    def test_portability_fills_secrets_from_context(self, registry, ctx, clients, db):
        manager = ctx.context_manager
        manager.process_tool_response(
            db, CONV, "updatePortabilityNip", PortabilityResponse(id=5, imei="356938035643809", portabilityNip="1234")
        )
        manager.process_tool_response(db, CONV, "getSimIcc", SimCardResponse(id=9, icc="8952"))
        clients.scraper.scrape_portability.return_value = ScrapePortabilityResponse(success=True)

        registry.execute(ctx, "scrapePortability", {"phone_number": "5512345678", "first_name": "Ana"})

        request = clients.scraper.scrape_portability.call_args.args[0]
        assert request.imei == "356938035643809"
        assert request.portability_nip == "1234"
        assert request.icc == "8952"
        assert request.first_name == "Ana"


class TestSerializeToolResult:
    def test_model(self):
        assert json.loads(serialize_tool_result(CustomerResponse(id=1)))["id"] == 1

    def test_list_of_models(self):
        assert json.loads(serialize_tool_result([OrderResponse(id="a")]))[0]["id"] == "a"
