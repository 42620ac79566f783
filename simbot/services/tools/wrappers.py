"""
Decorators composed around every tool handler.

Order matters: errors are normalized into ToolExecutionError first, and the
result is stored into the conversation context only when the call succeeded.
"""

import time
from functools import wraps
from typing import Any, Callable, Optional

from pydantic import ValidationError

from simbot.logging_config import get_logger
from simbot.services.clients.base import ServiceError
from simbot.services.tools.context import TurnContext
from simbot.services.tools.exceptions import ToolExecutionError

logger = get_logger("tools")

INVALID_ARGUMENTS_MESSAGE = "Faltan datos requeridos o tienen un formato inválido"
UNEXPECTED_ERROR_MESSAGE = "Ocurrió un error inesperado. Por favor, intenta nuevamente"


def normalize_tool_errors(
    tool_name: str,
    *,
    not_found: Optional[str] = None,
    unavailable: str,
    generic: Optional[str] = None,
) -> Callable:
    """Turn any failure of the wrapped tool into a ToolExecutionError."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(ctx: TurnContext, args: Any) -> Any:
            start = time.monotonic()
            logger.info(f"Executing tool: {tool_name}")
            try:
                result = func(ctx, args)
            except ToolExecutionError as e:
                logger.error(
                    f"Tool execution failed: {tool_name}",
                    extra={"context": {"user_message": e.user_message, "technical": e.technical_details}},
                )
                raise
            except ValidationError as e:
                logger.warning(f"Invalid arguments for tool {tool_name}: {e.error_count()} errors")
                raise ToolExecutionError(tool_name, INVALID_ARGUMENTS_MESSAGE, str(e)) from e
            except ServiceError as e:
                logger.error(
                    f"Service error in tool {tool_name}",
                    extra={"context": {"service": e.service, "status": e.status_code}},
                )
                if e.is_not_found and not_found:
                    raise ToolExecutionError(tool_name, not_found, f"HTTP 404 from {e.service}") from e
                raise ToolExecutionError(tool_name, unavailable, str(e)) from e
            except Exception as e:
                logger.exception(f"Unexpected error in tool: {tool_name}")
                raise ToolExecutionError(tool_name, generic or UNEXPECTED_ERROR_MESSAGE, str(e)) from e

            logger.info(
                f"Tool executed successfully: {tool_name}",
                extra={"context": {"elapsed_ms": round((time.monotonic() - start) * 1000, 2)}},
            )
            return result

        return wrapper

    return decorator


def store_tool_context(tool_name: str) -> Callable:
    """Feed a successful tool result to the context data manager."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(ctx: TurnContext, args: Any) -> Any:
            result = func(ctx, args)

            conversation_id = ctx.bound_conversation_id
            if conversation_id is None:
                logger.warning(f"No conversation bound for tool: {tool_name}. Context data will not be stored.")
            elif result is not None:
                ctx.context_manager.process_tool_response(ctx.db, conversation_id, tool_name, result)
            return result

        return wrapper

    return decorator
