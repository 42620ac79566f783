from simbot.schemas.services import (
    ScrapePortabilityRequest,
    ScrapePortabilityResponse,
    ScrapeRequest,
    ScrapeResponse,
)
from simbot.services.clients import ScraperClient
from simbot.services.tools.context import TurnContext
from simbot.services.tools.registry import ToolRegistry


def register_scraper_tools(registry: ToolRegistry, scraper: ScraperClient) -> None:
    @registry.tool(
        "scrapeImeiCompatibility",
        "Check whether a device IMEI is compatible with the network",
        ScrapeRequest,
        not_found="No se pudo verificar la compatibilidad del IMEI. Intenta nuevamente más tarde",
        unavailable="El servicio de verificación de IMEI no está disponible en este momento",
        generic="Ocurrió un error al verificar la compatibilidad del IMEI",
    )
    def scrape_imei_compatibility(ctx: TurnContext, args: ScrapeRequest) -> ScrapeResponse:
        return scraper.scrape_compatibility(args)

    @registry.tool(
        "scrapePortability",
        """
        Submit the portability process: phone_number, imei, portability_nip, icc,
        first_name, last_name, email. imei, portability_nip and icc may be omitted
        when they were registered earlier in the conversation.
        """,
        ScrapePortabilityRequest,
        not_found="No se pudo verificar la portabilidad. Intenta nuevamente más tarde",
        unavailable="El servicio de verificación de portabilidad no está disponible en este momento",
        generic="Ocurrió un error al verificar la portabilidad",
    )
    def scrape_portability(ctx: TurnContext, args: ScrapePortabilityRequest) -> ScrapePortabilityResponse:
        manager = ctx.context_manager
        request = args.model_copy(
            update={
                "imei": args.imei or manager.get_decrypted_portability_imei(ctx.db, ctx.conversation_id),
                "portability_nip": args.portability_nip
                or manager.get_decrypted_portability_nip(ctx.db, ctx.conversation_id),
                "icc": args.icc or manager.get_decrypted_sim_icc(ctx.db, ctx.conversation_id),
            }
        )
        return scraper.scrape_portability(request)
