import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from simbot.logging_config import get_logger
from simbot.services.tools.context import TurnContext
from simbot.services.tools.exceptions import ToolExecutionError
from simbot.services.tools.wrappers import INVALID_ARGUMENTS_MESSAGE, normalize_tool_errors, store_tool_context

logger = get_logger("tools.registry")


@dataclass
class ToolDefinition:
    name: str
    description: str
    args_model: Type[BaseModel]
    handler: Callable[[TurnContext, BaseModel], Any]

    def openai_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description.strip(),
                "parameters": self.args_model.model_json_schema(),
            },
        }


class ToolRegistry:
    """Named tools offered to the model, each wrapped with error normalization and context storage."""

    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}

    def tool(
        self,
        name: str,
        description: str,
        args_model: Type[BaseModel],
        *,
        unavailable: str,
        not_found: Optional[str] = None,
        generic: Optional[str] = None,
    ) -> Callable:
        def decorator(func: Callable) -> Callable:
            wrapped = store_tool_context(name)(
                normalize_tool_errors(name, not_found=not_found, unavailable=unavailable, generic=generic)(func)
            )
            self._tools[name] = ToolDefinition(name, description, args_model, wrapped)
            return func

        return decorator

    def names(self) -> List[str]:
        return list(self._tools)

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def openai_schemas(self) -> List[dict]:
        return [definition.openai_schema() for definition in self._tools.values()]

    def execute(self, ctx: TurnContext, name: str, arguments: Any) -> Any:
        """Parse arguments, run the tool and return its typed result."""
        definition = self._tools.get(name)
        if definition is None:
            raise ToolExecutionError(name, "La herramienta solicitada no existe", f"Unknown tool: {name}")

        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments or "{}")
            except json.JSONDecodeError as e:
                raise ToolExecutionError(name, INVALID_ARGUMENTS_MESSAGE, f"Malformed JSON arguments: {e}") from e

        try:
            args = definition.args_model.model_validate(arguments or {})
        except ValidationError as e:
            logger.warning(f"Invalid arguments for tool {name}: {e.error_count()} errors")
            raise ToolExecutionError(name, INVALID_ARGUMENTS_MESSAGE, str(e)) from e

        return definition.handler(ctx, args)


def serialize_tool_result(result: Any) -> str:
    """JSON text of a tool result for the follow-up model turn."""
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    if isinstance(result, list):
        return json.dumps(
            [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in result],
            ensure_ascii=False,
        )
    return json.dumps(result, ensure_ascii=False, default=str)
