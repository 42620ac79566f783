from typing import List, Optional

import httpx

from simbot.logging_config import get_logger
from simbot.services.llm.base import LLMError, LLMProvider, LLMResponse, ToolCall

logger = get_logger("llm.openai")


class OpenAIProvider(LLMProvider):
    """OpenAI chat-completions provider with function calling."""

    def __init__(self, api_key: str, default_model: str = "gpt-4o-mini", default_timeout: float = 30.0):
        self.api_key = api_key
        self.default_model = default_model
        self.default_timeout = default_timeout
        self.base_url = "https://api.openai.com/v1/chat/completions"

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        tools: Optional[List[dict]] = None,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        """Generate response from OpenAI."""

        model = model or self.default_model
        timeout = timeout_seconds if timeout_seconds is not None else self.default_timeout

        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_completion_tokens": max_tokens,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        logger.debug(f"OpenAI request: model={model}, messages_count={len(messages)}, tools={len(tools or [])}")

        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.post(
                    self.base_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.TimeoutException as e:
            raise LLMError(f"OpenAI request timed out after {timeout}s") from e
        except httpx.HTTPError as e:
            raise LLMError(f"OpenAI transport error: {e}") from e

        logger.debug(f"OpenAI response status: {response.status_code}")

        if response.status_code != 200:
            logger.error(f"OpenAI error: {response.text}")
            raise LLMError(f"OpenAI API error: {response.status_code} - {response.text}")

        data = response.json()

        content = ""
        tool_calls: List[ToolCall] = []
        if data.get("choices"):
            message = data["choices"][0].get("message", {})
            content = message.get("content") or ""
            for call in message.get("tool_calls") or []:
                function = call.get("function", {})
                tool_calls.append(
                    ToolCall(
                        id=call.get("id", ""),
                        name=function.get("name", ""),
                        arguments=function.get("arguments") or "{}",
                    )
                )
        logger.debug(f"OpenAI content: {content[:100] if content else 'EMPTY'}, tool_calls={len(tool_calls)}")

        return LLMResponse(
            content=content,
            model=data.get("model", model),
            usage=data.get("usage"),
            tool_calls=tool_calls,
        )
