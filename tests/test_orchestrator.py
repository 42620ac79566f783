import base64
from unittest.mock import Mock

import pytest

from simbot.models import MessageType
from simbot.schemas.services import CustomerResponse
from simbot.services import conversation_service, message_service
from simbot.services.clients import ServiceClients, ServiceError
from simbot.services.context_data_manager import ContextDataManager
from simbot.services.encryption import SensitiveDataEncryptor
from simbot.services.llm import LLMError, LLMProvider, LLMResponse, ToolCall
from simbot.services.orchestrator import (
    EMPTY_RESPONSE_MESSAGE,
    TOOL_RESULTS_PREFIX,
    UNEXPECTED_ERROR_MESSAGE,
    ChatOrchestrator,
    extract_state_marker,
    strip_state_marker,
)
from simbot.services.state_machine import ConversationState
from simbot.services.tools import build_tool_registry

CONV = "525512345678"


class ScriptedLLM(LLMProvider):
    """Returns the queued responses in order and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def generate(self, messages, model=None, temperature=0.7, max_tokens=1000, tools=None, timeout_seconds=None):
        self.requests.append({"messages": list(messages), "tools": tools, "timeout": timeout_seconds})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def reply(content, *calls):
    return LLMResponse(content=content, model="test", tool_calls=list(calls))


def call(name, arguments):
    return ToolCall(id=f"call_{name}", name=name, arguments=arguments)


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
def make_orchestrator(clients):
    manager = ContextDataManager(SensitiveDataEncryptor(base64.b64encode(b"k" * 32).decode()))

    def factory(llm, **kwargs):
        return ChatOrchestrator(
            llm=llm,
            tools=build_tool_registry(clients),
            context_manager=manager,
            semantic_context=lambda query: "Planes desde $99 al mes.",
            **kwargs,
        )

    return factory


class TestStateMarkers:
    def test_last_marker_wins(self):
        assert extract_state_marker("[STATE:INITIAL] hola [STATE:PAYMENT_PENDING]") == ConversationState.PAYMENT_PENDING

    def test_unknown_marker(self):
        assert extract_state_marker("hola [STATE:FLYING]") is None

    def test_no_marker(self):
        assert extract_state_marker("hola") is None
        assert extract_state_marker("   ") is None
        assert extract_state_marker(None) is None

    def test_strip_trailing_marker(self):
        assert strip_state_marker("Perfecto, ¿tu dirección? [STATE:ADDRESS_REQUIRED]  ") == "Perfecto, ¿tu dirección?"
        assert strip_state_marker("sin marcador") == "sin marcador"

    def test_strip_every_marker(self):
        assert strip_state_marker("[STATE:INITIAL] Hola [STATE:INTENT_SELECTION] ¿qué deseas?") == "Hola ¿qué deseas?"
        assert strip_state_marker("Listo [STATE:FLYING]\nGracias [STATE:COMPLETED]") == "Listo\nGracias"


class TestHandleMessage:
    def test_plain_reply_applies_marker(self, db, make_orchestrator):
        llm = ScriptedLLM(reply("¡Hola! ¿Cuál es tu nombre? [STATE:CUSTOMER_REGISTRATION]"))

        result = make_orchestrator(llm).handle_message(db, "hola", CONV)

        assert result == "¡Hola! ¿Cuál es tu nombre?"
        assert conversation_service.get_current_state(db, CONV) == ConversationState.CUSTOMER_REGISTRATION
        saved = message_service.get_messages(db, CONV)
        assert [(m.message_type, m.content) for m in saved] == [
            (MessageType.USER.value, "hola"),
            (MessageType.ASSISTANT.value, "¡Hola! ¿Cuál es tu nombre?"),
        ]

    def test_system_prompt_contents(self, db, make_orchestrator):
        conversation_service.store_context_data(db, CONV, "customer_id", 42)
        llm = ScriptedLLM(reply("ok"))

        make_orchestrator(llm).handle_message(db, "¿qué planes tienen?", CONV)

        messages = llm.requests[0]["messages"]
        system = messages[0]["content"]
        assert messages[0]["role"] == "system"
        assert "Planes desde $99 al mes." in system
        assert CONV in system
        assert "INITIAL" in system
        assert "Utiliza customer_id: 42" in system
        assert messages[-1] == {"role": "user", "content": "¿qué planes tienen?"}
        assert llm.requests[0]["tools"]

    def test_history_is_replayed(self, db, make_orchestrator):
        llm = ScriptedLLM(reply("Hola"), reply("Claro"))
        orchestrator = make_orchestrator(llm)
        orchestrator.handle_message(db, "hola", CONV)
        orchestrator.handle_message(db, "quiero una sim", CONV)

        roles = [m["role"] for m in llm.requests[1]["messages"]]
        assert roles == ["system", "user", "assistant", "user"]

    def test_tool_loop(self, db, make_orchestrator, clients):
        clients.customers.get_by_phone_number.return_value = CustomerResponse(id=42, firstName="Ana", lastName="López")
        llm = ScriptedLLM(
            reply("", call("getCustomerByPhoneNumber", '{"phoneNumber": "525512345678"}')),
            reply("Hola Ana, ya estás registrada. [STATE:INTENT_SELECTION]"),
        )

        result = make_orchestrator(llm).handle_message(db, "hola", CONV)

        assert result == "Hola Ana, ya estás registrada."
        assert conversation_service.get_context_data(db, CONV, "customer_id") == 42
        follow_up = llm.requests[1]["messages"]
        assert follow_up[-2] == {"role": "assistant", "content": ""}
        assert follow_up[-1]["role"] == "user"
        assert follow_up[-1]["content"].startswith(TOOL_RESULTS_PREFIX + "Tool: getCustomerByPhoneNumber, Result: ")
        # tool output is not written to the message log
        assert [m.message_type for m in message_service.get_messages(db, CONV)] == ["USER", "ASSISTANT"]

    def test_tool_iterations_are_bounded(self, db, make_orchestrator, clients):
        clients.customers.get_by_id.return_value = CustomerResponse(id=1)
        loop_call = call("getCustomerById", '{"customerId": 1}')
        llm = ScriptedLLM(reply("", loop_call), reply("", loop_call), reply("", loop_call))

        result = make_orchestrator(llm, max_tool_iterations=2).handle_message(db, "hola", CONV)

        assert len(llm.requests) == 3
        assert clients.customers.get_by_id.call_count == 2
        assert result == EMPTY_RESPONSE_MESSAGE

    def test_invalid_marker_is_ignored(self, db, make_orchestrator):
        llm = ScriptedLLM(reply("Hola [STATE:FLYING]"))
        make_orchestrator(llm).handle_message(db, "hola", CONV)
        assert conversation_service.get_current_state(db, CONV) == ConversationState.INITIAL

    def test_several_markers_last_wins_none_reach_user(self, db, make_orchestrator):
        llm = ScriptedLLM(reply("[STATE:CUSTOMER_REGISTRATION] ¡Hola! [STATE:INTENT_SELECTION] ¿Qué necesitas?"))
        result = make_orchestrator(llm).handle_message(db, "hola", CONV)
        assert result == "¡Hola! ¿Qué necesitas?"
        assert conversation_service.get_current_state(db, CONV) == ConversationState.INTENT_SELECTION

    def test_rejected_transition_keeps_state(self, db, make_orchestrator):
        conversation_service.transition_to(db, CONV, ConversationState.COMPLETED)
        llm = ScriptedLLM(reply("Enviado [STATE:PAYMENT_PENDING]"))
        result = make_orchestrator(llm).handle_message(db, "hola", CONV)
        assert result == "Enviado"
        assert conversation_service.get_current_state(db, CONV) == ConversationState.COMPLETED


class TestFailureHandling:
    def test_tool_failure_enters_error_state(self, db, make_orchestrator, clients):
        clients.portabilities.create_order.side_effect = ServiceError("portabilities", 503, "down")
        llm = ScriptedLLM(
            reply("", call("createNewOrderForSimCardPurchase", '{"customerId": 1, "productId": 2, "addressId": 3}'))
        )

        result = make_orchestrator(llm).handle_message(db, "compra la sim", CONV)

        assert result == (
            "La operación 'createNewOrderForSimCardPurchase' no pudo completarse: "
            "El servicio de órdenes no está disponible en este momento. "
            "Por favor, verifica los datos e intenta nuevamente."
        )
        context = conversation_service.get_all_context_data(db, CONV)
        assert context["last_error"] == result
        assert context["failed_tool"] == "createNewOrderForSimCardPurchase"
        assert context["error_count"] == 1
        assert conversation_service.get_current_state(db, CONV) == ConversationState.ERROR_STATE

    def test_retry_clears_error_context(self, db, make_orchestrator, clients):
        clients.portabilities.create_order.side_effect = ServiceError("portabilities", 503, "down")
        llm = ScriptedLLM(
            reply("", call("createNewOrderForSimCardPurchase", '{"customerId": 1, "productId": 2, "addressId": 3}')),
            reply("Intentemos de nuevo. [STATE:ADDRESS_REQUIRED]"),
        )
        orchestrator = make_orchestrator(llm)
        orchestrator.handle_message(db, "compra la sim", CONV)

        result = orchestrator.handle_message(db, "otra vez", CONV)

        assert result == "Intentemos de nuevo."
        context = conversation_service.get_all_context_data(db, CONV)
        for key in ("last_error", "error_timestamp", "failed_tool", "error_count"):
            assert key not in context
        assert conversation_service.get_current_state(db, CONV) == ConversationState.ADDRESS_REQUIRED
        # the retry turn no longer sees the error section
        assert "INFORMACIÓN DE ERRORES" not in llm.requests[1]["messages"][0]["content"]

    def test_repeated_failures_count_up(self, db, make_orchestrator, clients):
        clients.customers.get_by_id.side_effect = ServiceError("customers", 500, "down")
        failing = call("getCustomerById", '{"customerId": 1}')
        orchestrator = make_orchestrator(ScriptedLLM(reply("", failing)))
        orchestrator.handle_message(db, "hola", CONV)
        conversation_service.record_error(db, CONV, "getCustomerById", "again")
        assert conversation_service.get_context_data(db, CONV, "error_count") == 2

    def test_model_error_returns_apology(self, db, make_orchestrator):
        llm = ScriptedLLM(LLMError("OpenAI API error: 500"))

        result = make_orchestrator(llm).handle_message(db, "hola", CONV)

        assert result == UNEXPECTED_ERROR_MESSAGE
        context = conversation_service.get_all_context_data(db, CONV)
        assert context["failed_tool"] == "system"
        assert context["last_error"] == "Unexpected error occurred"
        assert conversation_service.get_current_state(db, CONV) == ConversationState.ERROR_STATE

    def test_exhausted_turn_budget(self, db, make_orchestrator):
        llm = ScriptedLLM(reply("nunca"))
        result = make_orchestrator(llm, turn_budget_seconds=0).handle_message(db, "hola", CONV)
        assert result == UNEXPECTED_ERROR_MESSAGE
        assert llm.requests == []

    def test_model_timeout_bounded_by_budget(self, db, make_orchestrator):
        llm = ScriptedLLM(reply("ok"))
        make_orchestrator(llm, turn_budget_seconds=5).handle_message(db, "hola", CONV)
        assert 0 < llm.requests[0]["timeout"] <= 5
