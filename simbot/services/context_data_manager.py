"""
Extract business facts from tool results into the conversation context.

Sensitive values (portability NIP and IMEI, checkout URL, SIM ICC) are
encrypted before they reach the context map. Extraction never fails the
tool call that produced the result.
"""

from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from simbot.logging_config import get_logger
from simbot.schemas.services import (
    AddressResponse,
    CheckoutSessionResponse,
    CustomerResponse,
    OrderResponse,
    PortabilityResponse,
    ScrapeResponse,
    SimCardResponse,
)
from simbot.services import conversation_service
from simbot.services.encryption import EncryptionError, SensitiveDataEncryptor, encryptor as default_encryptor
from simbot.services.log_sanitizer import mask_email, mask_phone, mask_url

logger = get_logger("context_data_manager")

ENCRYPTED_KEYS = frozenset({"portability_nip", "portability_imei", "checkout_session_url", "sim_card_icc"})

CUSTOMER_TOOLS = ("registerCustomer", "getCustomerById", "getCustomerByEmail", "getCustomerByPhoneNumber")
ORDER_TOOLS = ("createNewOrderForSimCardPurchase", "createOrderForSimCardPortabilityPurchase")
PORTABILITY_TOOLS = ("getPortabilityByPhoneNumber", "updateImei", "updatePortabilityNip")


class ContextDataManager:
    def __init__(self, encryptor: Optional[SensitiveDataEncryptor] = None):
        self.encryptor = encryptor or default_encryptor
        self._extractors: Dict[str, Callable[[Any], Dict[str, Any]]] = {}
        for name in CUSTOMER_TOOLS:
            self._extractors[name] = self._extract_customer
        for name in ORDER_TOOLS:
            self._extractors[name] = self._extract_order
        for name in PORTABILITY_TOOLS:
            self._extractors[name] = self._extract_portability
        self._extractors["createAddress"] = self._extract_address
        self._extractors["getSimIcc"] = self._extract_sim_card
        self._extractors["Create_checkout_session"] = self._extract_checkout
        self._extractors["scrapeImeiCompatibility"] = self._extract_imei_compatibility

    def process_tool_response(self, db: Session, conversation_id: str, tool_name: str, tool_result: Any) -> None:
        """Store the fields of interest from a successful tool result."""
        if tool_result is None:
            return
        extractor = self._extractors.get(tool_name)
        if extractor is None:
            logger.debug(f"No extraction rule for tool: {tool_name}")
            return

        try:
            data = extractor(tool_result)
            if data:
                conversation_service.store_context_values(db, conversation_id, data)
                logger.info(
                    "Stored context data from tool",
                    extra={"context": {"tool": tool_name, "entries": len(data), "conversation": mask_phone(conversation_id)}},
                )
        except Exception:
            logger.exception(f"Error processing tool response for tool: {tool_name}")

    # Extraction rules

    def _extract_customer(self, result: Any) -> Dict[str, Any]:
        if not isinstance(result, CustomerResponse):
            return {}
        logger.debug(f"Extracted customer data: id={result.id}, email={mask_email(result.email)}")
        return {
            "customer_id": result.id,
            "customer_name": f"{result.firstName} {result.lastName}",
            "customer_first_name": result.firstName,
            "customer_last_name": result.lastName,
            "customer_email": result.email,
        }

    def _extract_address(self, result: Any) -> Dict[str, Any]:
        if not isinstance(result, AddressResponse):
            return {}
        logger.debug(f"Extracted address data: id={result.id}, district={result.district}")
        return {
            "address_id": result.id,
            "address_district": result.district,
            "address_postal_code": result.postalCode,
        }

    def _extract_order(self, result: Any) -> Dict[str, Any]:
        if not isinstance(result, OrderResponse):
            return {}
        logger.debug(f"Extracted order data: id={result.id}")
        return {
            "order_id": result.id,
            "order_product_id": result.productId,
            "last_order_id": result.id,
        }

    def _extract_portability(self, result: Any) -> Dict[str, Any]:
        if not isinstance(result, PortabilityResponse):
            return {}
        data: Dict[str, Any] = {"portability_id": result.id}
        if result.imei is not None:
            data["portability_imei"] = self.encryptor.encrypt(result.imei)
        if result.portabilityNip is not None:
            data["portability_nip"] = self.encryptor.encrypt(result.portabilityNip)
        data["portability_order_id"] = result.orderId
        logger.debug(
            f"Extracted portability data: id={result.id}, phone={mask_phone(result.phoneNumber)}, "
            f"has_imei={result.imei is not None}, has_nip={result.portabilityNip is not None}"
        )
        return data

    def _extract_sim_card(self, result: Any) -> Dict[str, Any]:
        if not isinstance(result, SimCardResponse):
            return {}
        logger.debug("Extracted SIM card data")
        return {"sim_card_icc": self.encryptor.encrypt(result.icc)}

    def _extract_checkout(self, result: Any) -> Dict[str, Any]:
        if not isinstance(result, CheckoutSessionResponse):
            return {}
        logger.debug(
            f"Extracted checkout data: session_id={result.checkout_session_id}, url={mask_url(result.stripe_session_url)}"
        )
        return {
            "checkout_session_url": self.encryptor.encrypt(result.stripe_session_url),
            "checkout_session_id": result.checkout_session_id,
            "payment_completed": False,
        }

    def _extract_imei_compatibility(self, result: Any) -> Dict[str, Any]:
        if not isinstance(result, ScrapeResponse):
            return {}
        logger.debug(f"Extracted IMEI compatibility: compatible={result.compatibility}")
        return {
            "imei_compatible": result.compatibility,
            "imei_compatibility_message": result.message,
        }

    # Presence checks

    def has_customer_data(self, db: Session, conversation_id: str) -> bool:
        return conversation_service.get_context_data(db, conversation_id, "customer_id") is not None

    def has_address_data(self, db: Session, conversation_id: str) -> bool:
        return conversation_service.get_context_data(db, conversation_id, "address_id") is not None

    def has_order_data(self, db: Session, conversation_id: str) -> bool:
        return conversation_service.get_context_data(db, conversation_id, "order_id") is not None

    def has_required_order_data(self, db: Session, conversation_id: str) -> bool:
        return self.has_customer_data(db, conversation_id) and self.has_address_data(db, conversation_id)

    def get_customer_id(self, db: Session, conversation_id: str) -> Optional[int]:
        return _as_int(conversation_service.get_context_data(db, conversation_id, "customer_id"))

    def get_address_id(self, db: Session, conversation_id: str) -> Optional[int]:
        return _as_int(conversation_service.get_context_data(db, conversation_id, "address_id"))

    # Decrypting accessors

    def _get_decrypted(self, db: Session, conversation_id: str, key: str) -> Optional[str]:
        value = conversation_service.get_context_data(db, conversation_id, key)
        if not isinstance(value, str):
            return None
        try:
            return self.encryptor.decrypt(value)
        except EncryptionError:
            logger.error(f"Failed to decrypt {key} for conversation {mask_phone(conversation_id)}")
            return None

    def get_decrypted_portability_nip(self, db: Session, conversation_id: str) -> Optional[str]:
        return self._get_decrypted(db, conversation_id, "portability_nip")

    def get_decrypted_portability_imei(self, db: Session, conversation_id: str) -> Optional[str]:
        return self._get_decrypted(db, conversation_id, "portability_imei")

    def get_decrypted_checkout_url(self, db: Session, conversation_id: str) -> Optional[str]:
        return self._get_decrypted(db, conversation_id, "checkout_session_url")

    def get_decrypted_sim_icc(self, db: Session, conversation_id: str) -> Optional[str]:
        return self._get_decrypted(db, conversation_id, "sim_card_icc")


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None
