"""
Chat orchestration: one coalesced user message in, one reply out.

A turn builds the system prompt (reference knowledge, conversation state and
a summary of stored context), runs a bounded model/tool loop, applies the
last [STATE:<NAME>] marker through the state machine and strips every marker from
the reply. Tool failures leave the conversation in ERROR_STATE with the
error recorded so the next message is treated as a retry.
"""

import re
import time
from pathlib import Path
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from simbot.config import settings
from simbot.logging_config import get_logger
from simbot.models import MessageType
from simbot.services import conversation_service, message_service
from simbot.services.context_data_manager import ContextDataManager
from simbot.services.context_enricher import ContextEnricher
from simbot.services.knowledge_service import fetch_semantic_context
from simbot.services.llm import LLMProvider, LLMResponse, OpenAIProvider, ToolCall
from simbot.services.log_sanitizer import mask_phone
from simbot.services.state_machine import ConversationState, TransitionPolicy, parse_state
from simbot.services.tools import (
    ToolExecutionError,
    ToolRegistry,
    TurnContext,
    build_tool_registry,
    serialize_tool_result,
)

logger = get_logger("orchestrator")

PROMPT_PATH = Path(__file__).resolve().parent.parent / "prompts" / "chatbot_rag_prompt.txt"

STATE_MARKER_PATTERN = re.compile(r"\[STATE:([A-Z_]+)\]")
ANY_STATE_MARKER_PATTERN = re.compile(r"[ \t]*\[STATE:[A-Z_]+\][ \t]*")
TRAILING_SPACES_PATTERN = re.compile(r"[ \t]+\n")

TOOL_RESULTS_PREFIX = "Resultado de las herramientas: "
EMPTY_RESPONSE_MESSAGE = "Lo siento, no pude procesar tu mensaje. Por favor, intenta de nuevo."
UNEXPECTED_ERROR_MESSAGE = (
    "Lo siento, ocurrió un error inesperado. Por favor, intenta nuevamente o reformula tu pregunta."
)


class TurnBudgetExceeded(Exception):
    """The turn ran out of its wall-clock budget before the model answered."""


def extract_state_marker(text: Optional[str]) -> Optional[ConversationState]:
    """State named by the last [STATE:<NAME>] marker, or None if absent or unknown."""
    if not text or not text.strip():
        return None
    names = STATE_MARKER_PATTERN.findall(text)
    if not names:
        return None
    state = parse_state(names[-1])
    if state is None:
        logger.warning(f"Invalid state name in response marker: {names[-1]}")
    return state


def strip_state_marker(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    stripped = ANY_STATE_MARKER_PATTERN.sub(" ", text)
    return TRAILING_SPACES_PATTERN.sub("\n", stripped).strip()


def load_prompt_template(path: Path = PROMPT_PATH) -> str:
    return path.read_text(encoding="utf-8")


class ChatOrchestrator:
    def __init__(
        self,
        llm: Optional[LLMProvider] = None,
        tools: Optional[ToolRegistry] = None,
        context_manager: Optional[ContextDataManager] = None,
        enricher: Optional[ContextEnricher] = None,
        semantic_context: Callable[[str], str] = fetch_semantic_context,
        prompt_template: Optional[str] = None,
        max_tool_iterations: Optional[int] = None,
        turn_budget_seconds: Optional[float] = None,
        policy: Optional[TransitionPolicy] = None,
    ):
        self.llm = llm or OpenAIProvider(
            api_key=settings.openai_api_key or "",
            default_model=settings.llm_model,
            default_timeout=settings.llm_timeout_seconds,
        )
        self.tools = tools or build_tool_registry()
        self.context_manager = context_manager or ContextDataManager()
        self.enricher = enricher or ContextEnricher(self.context_manager)
        self.semantic_context = semantic_context
        self.prompt_template = prompt_template if prompt_template is not None else load_prompt_template()
        self.max_tool_iterations = (
            max_tool_iterations if max_tool_iterations is not None else settings.max_tool_iterations
        )
        self.turn_budget_seconds = (
            turn_budget_seconds if turn_budget_seconds is not None else settings.turn_budget_seconds
        )
        self.policy = policy

    def handle_message(self, db: Session, user_message: str, conversation_id: str) -> str:
        """Process one coalesced message and return the reply for the user."""
        ctx = TurnContext(db=db, conversation_id=conversation_id, context_manager=self.context_manager)
        masked = mask_phone(conversation_id)
        try:
            with conversation_service.conversation_lock(conversation_id):
                conversation_service.get_or_create_conversation(db, conversation_id, for_update=True)
                current_state = conversation_service.get_current_state(db, conversation_id)
                logger.info(f"Processing message for {masked} in state {current_state.value}")

                if conversation_service.is_retry_attempt(db, conversation_id):
                    logger.info(f"Detected retry attempt for {masked}")
                    conversation_service.clear_error_context(db, conversation_id)

                system_prompt = self._build_system_prompt(db, conversation_id, user_message, current_state)
                history = message_service.get_conversation_history(
                    db, conversation_id, limit=settings.llm_history_messages
                )
                message_service.save_message(db, conversation_id, MessageType.USER, user_message)

                response = self._run_tool_loop(ctx, system_prompt, history, user_message)

                self._apply_state_marker(db, conversation_id, response)
                reply = strip_state_marker(response)
                message_service.save_message(db, conversation_id, MessageType.ASSISTANT, reply)
                return reply

        except ToolExecutionError as e:
            logger.error(
                f"Tool execution failed for {masked}: {e.tool_name}",
                extra={"context": {"technical": e.technical_details}},
            )
            reply = e.message_for_user()
            self._record_failure(db, conversation_id, e.tool_name, reply)
            return reply

        except Exception as e:
            logger.exception(f"Unexpected error during message processing for {masked}")
            if isinstance(e, SQLAlchemyError):
                db.rollback()
            self._record_failure(db, conversation_id, "system", "Unexpected error occurred")
            return UNEXPECTED_ERROR_MESSAGE

        finally:
            ctx.release()

    def _record_failure(self, db: Session, conversation_id: str, tool_name: str, message: str) -> None:
        conversation_service.record_error(db, conversation_id, tool_name, message)
        if conversation_service.get_current_state(db, conversation_id) != ConversationState.ERROR_STATE:
            conversation_service.transition_to(db, conversation_id, ConversationState.ERROR_STATE, self.policy)

    def _build_system_prompt(
        self, db: Session, conversation_id: str, user_message: str, current_state: ConversationState
    ) -> str:
        return self.prompt_template.format(
            context=self.semantic_context(user_message),
            phone_number=conversation_id,
            user_query=user_message,
            conversation_state=current_state.value,
            available_data=self.enricher.generate_context_summary(db, conversation_id),
        )

    def _run_tool_loop(self, ctx: TurnContext, system_prompt: str, history: List[dict], user_message: str) -> str:
        deadline = time.monotonic() + self.turn_budget_seconds
        messages = [{"role": "system", "content": system_prompt}, *history, {"role": "user", "content": user_message}]

        response = self._call_model(messages, deadline)
        iteration = 0
        while response.has_tool_calls and iteration < self.max_tool_iterations:
            iteration += 1
            logger.info(f"Tool execution iteration {iteration} for {mask_phone(ctx.conversation_id)}")

            tool_results = self._execute_tool_calls(ctx, response.tool_calls)
            messages.append({"role": "assistant", "content": response.content or ""})
            messages.append({"role": "user", "content": TOOL_RESULTS_PREFIX + tool_results})
            response = self._call_model(messages, deadline)

        if response.has_tool_calls:
            logger.warning(
                f"Reached maximum tool iterations ({self.max_tool_iterations}) for {mask_phone(ctx.conversation_id)}"
            )

        if response.content:
            return response.content
        logger.warning(f"Empty response from model for {mask_phone(ctx.conversation_id)}")
        return EMPTY_RESPONSE_MESSAGE

    def _call_model(self, messages: List[dict], deadline: float) -> LLMResponse:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TurnBudgetExceeded(f"Turn budget of {self.turn_budget_seconds}s exhausted")
        return self.llm.generate(
            messages,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            tools=self.tools.openai_schemas(),
            timeout_seconds=min(settings.llm_timeout_seconds, remaining),
        )

    def _execute_tool_calls(self, ctx: TurnContext, tool_calls: List[ToolCall]) -> str:
        # Raw results may hold NIP/IMEI/checkout URL, so they stay in the turn and are not persisted.
        lines = []
        for call in tool_calls:
            result = self.tools.execute(ctx, call.name, call.arguments)
            lines.append(f"Tool: {call.name}, Result: {serialize_tool_result(result)}")
        return "\n".join(lines)

    def _apply_state_marker(self, db: Session, conversation_id: str, response: str) -> None:
        new_state = extract_state_marker(response)
        if new_state is None:
            return
        current_state = conversation_service.get_current_state(db, conversation_id)
        if new_state == current_state:
            return
        if not conversation_service.transition_to(db, conversation_id, new_state, self.policy):
            logger.warning(f"Invalid state transition attempted: {current_state.value} -> {new_state.value}")


_orchestrator: Optional[ChatOrchestrator] = None


def get_orchestrator() -> ChatOrchestrator:
    """Get or create the shared orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ChatOrchestrator()
    return _orchestrator
