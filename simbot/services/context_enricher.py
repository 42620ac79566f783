"""Human-readable summary of stored context for the system prompt."""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from simbot.logging_config import get_logger
from simbot.services import conversation_service
from simbot.services.context_data_manager import ContextDataManager

logger = get_logger("context_enricher")

EMPTY_CONTEXT_SUMMARY = (
    "No hay información previa disponible. Deberás recopilar todos los datos necesarios del usuario."
)


def _append_if_present(lines: List[str], label: str, value: Any) -> None:
    if value is not None:
        lines.append(f"  - {label}: {value}")


def _present(context: Dict[str, Any], key: str) -> bool:
    return context.get(key) is not None


class ContextEnricher:
    def __init__(self, context_manager: Optional[ContextDataManager] = None):
        self.context_manager = context_manager or ContextDataManager()

    def generate_context_summary(self, db: Session, conversation_id: str) -> str:
        context = conversation_service.get_all_context_data(db, conversation_id)
        if not context:
            return EMPTY_CONTEXT_SUMMARY

        lines = [
            "=== INFORMACIÓN DISPONIBLE EN EL CONTEXTO ===",
            "",
            "IMPORTANTE: Usa estos datos cuando estén disponibles. NO vuelvas a preguntar información que ya tienes.",
            "",
        ]

        if _present(context, "customer_id"):
            lines.append("DATOS DEL CLIENTE:")
            _append_if_present(lines, "ID del cliente", context.get("customer_id"))
            _append_if_present(lines, "Nombre completo", context.get("customer_name"))
            _append_if_present(lines, "Nombre", context.get("customer_first_name"))
            _append_if_present(lines, "Apellido", context.get("customer_last_name"))
            _append_if_present(lines, "Email", context.get("customer_email"))
            _append_if_present(lines, "Teléfono", context.get("customer_phone"))
            lines.append(f"Cliente REGISTRADO - Utiliza customer_id: {context['customer_id']} en las tools")
            lines.append("")

        if _present(context, "address_id"):
            lines.append("DATOS DE DIRECCIÓN:")
            _append_if_present(lines, "ID de dirección", context.get("address_id"))
            _append_if_present(lines, "Calle", context.get("address_street"))
            _append_if_present(lines, "Número", context.get("address_number"))
            _append_if_present(lines, "Distrito", context.get("address_district"))
            _append_if_present(lines, "Código Postal", context.get("address_postal_code"))
            _append_if_present(lines, "Referencia", context.get("address_reference"))
            _append_if_present(lines, "Dirección completa", context.get("address_full"))
            lines.append(f"Dirección REGISTRADA - Utiliza address_id: {context['address_id']} en las tools")
            lines.append("")

        if _present(context, "order_id"):
            lines.append("DATOS DE ORDEN:")
            _append_if_present(lines, "ID de orden", context.get("order_id"))
            _append_if_present(lines, "ID de producto", context.get("order_product_id"))
            _append_if_present(lines, "Estado", context.get("order_status"))
            lines.append(f"Orden CREADA - Utiliza order_id: {context['order_id']} para crear el checkout")
            lines.append("")

        if _present(context, "portability_id"):
            has_imei = _present(context, "portability_imei")
            has_nip = _present(context, "portability_nip")
            lines.append("DATOS DE PORTABILIDAD:")
            _append_if_present(lines, "ID de portabilidad", context.get("portability_id"))
            _append_if_present(lines, "Teléfono a portar", context.get("portability_phone"))
            _append_if_present(lines, "Estado", context.get("portability_status"))
            # Ciphertext is never shown to the model, only whether the value is known.
            if has_imei:
                lines.append("  - IMEI: registrado")
            if has_nip:
                lines.append("  - NIP: registrado")
            if not has_imei or not has_nip:
                lines.append("FALTA INFORMACIÓN:")
                if not has_imei:
                    lines.append("    - Solicita el IMEI del dispositivo")
                if not has_nip:
                    lines.append("    - Solicita el NIP de portabilidad")
            else:
                lines.append("Portabilidad COMPLETA con IMEI y NIP")
            lines.append("")

        if _present(context, "checkout_session_id"):
            lines.append("DATOS DE PAGO:")
            _append_if_present(lines, "ID de sesión de checkout", context.get("checkout_session_id"))
            _append_if_present(
                lines, "URL de pago", self.context_manager.get_decrypted_checkout_url(db, conversation_id)
            )
            if context.get("payment_completed") is True:
                lines.append("Pago COMPLETADO")
            else:
                lines.append("Pago PENDIENTE - Proporciona la URL al usuario")
            lines.append("")

        if "imei_compatible" in context:
            lines.append("VERIFICACIÓN DE IMEI:")
            _append_if_present(lines, "IMEI verificado", context.get("imei_checked"))
            _append_if_present(lines, "Detalle", context.get("imei_compatibility_message"))
            if context.get("imei_compatible") is True:
                lines.append("IMEI COMPATIBLE con la red")
            else:
                lines.append("IMEI NO COMPATIBLE con la red")
            lines.append("")

        if _present(context, "last_error"):
            lines.append("INFORMACIÓN DE ERRORES:")
            _append_if_present(lines, "Último error", context.get("last_error"))
            _append_if_present(lines, "Herramienta fallida", context.get("failed_tool"))
            _append_if_present(lines, "Contador de errores", context.get("error_count"))
            lines.append("  El usuario puede estar reintentando una operación fallida")
            lines.append("")

        lines.append("=== FIN DE INFORMACIÓN DISPONIBLE ===")
        summary = "\n".join(lines) + "\n"
        logger.debug(f"Generated context summary: {len(summary)} characters")
        return summary
