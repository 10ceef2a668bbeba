# services/chat/src/chat/orchestrator.py

import asyncio
import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from libs.budget_shared.context import AppContext
from libs.budget_shared.errors import GENERIC_FAILURE_MESSAGE, ModelInvocationError
from libs.budget_shared.logging import get_logger
from openai import AsyncOpenAI, OpenAIError

from .config import ChatConfig, config
from .gateway import FinancialDataGateway
from .models import (
    ChatMessage,
    ConversationLogEntry,
    OrchestrationResult,
    StreamEvent,
    ToolCallRecord,
)
from .prompts.finance_terminology import FINANCE_TERMINOLOGY, KNOWN_PROJECTS
from .streaming import EventChannel
from .tools import KNOWN_TRADES, execute_tool, get_tool_friendly_name, tool_schemas

logger = get_logger(__name__)

FALLBACK_PROMPT = (
    "You are a construction finance AI assistant. Always use the available "
    "tools to answer budget questions and never make up numbers."
)


@dataclass
class PendingToolCall:
    """Tool call being assembled from streamed deltas."""

    id: str = ""
    name: str = ""
    arguments: List[str] = field(default_factory=list)

    @property
    def raw_arguments(self) -> str:
        return "".join(self.arguments) or "{}"

    def parsed_arguments(self) -> Optional[Dict[str, Any]]:
        try:
            value = json.loads(self.raw_arguments)
        except json.JSONDecodeError:
            return None
        return value if isinstance(value, dict) else None


@dataclass
class OrchestrationRun:
    """Handle on a running orchestration: its output channel and producer task."""

    channel: EventChannel
    task: asyncio.Task
    result: OrchestrationResult
    context: AppContext

    def cancel(self) -> None:
        if not self.task.done():
            self.task.cancel()


class ConversationOrchestrator:
    """
    Runs the bounded tool-calling loop against an OpenAI-compatible model.

    Each step streams one model completion, executes any tool calls it
    requested (sequentially, in the model's order) and feeds the results back;
    the loop ends when the model answers without tools or the step cap is hit.
    Every chunk is written, in order, to an EventChannel.
    """

    def __init__(
        self, settings: Optional[ChatConfig] = None, client: Optional[Any] = None
    ):
        self.settings = settings or config
        self.client = client or AsyncOpenAI(
            base_url=self.settings.openrouter_base_url,
            api_key=self.settings.openrouter_api_key,
        )
        self.tools = tool_schemas()

        # Load prompt templates
        prompts_dir = os.path.join(os.path.dirname(__file__), "prompts")
        self.env = Environment(
            loader=FileSystemLoader(prompts_dir),
            autoescape=select_autoescape(),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        try:
            tpl_file = self.settings.system_prompt_template.split("/")[-1]
            self.system_tpl = self.env.get_template(tpl_file)
            logger.info(f"Loaded system prompt template: {tpl_file}")
        except Exception as e:
            logger.warning(f"Could not load system prompt template: {e}")
            self.system_tpl = None

        logger.info(
            f"Orchestrator initialized with model {self.settings.agent_model}, "
            f"{len(self.tools)} tools, max {self.settings.max_steps} steps"
        )

    # --- Prompt & history -----------------------------------------------------

    def render_system_prompt(self) -> str:
        if not self.system_tpl:
            return FALLBACK_PROMPT
        return self.system_tpl.render(
            company_name=self.settings.company_name,
            projects=KNOWN_PROJECTS,
            trades=KNOWN_TRADES,
            terminology=FINANCE_TERMINOLOGY if self.settings.include_terminology else None,
        )

    def build_messages(self, history: List[ChatMessage]) -> List[Dict[str, Any]]:
        """Fixed system prompt followed by the caller's conversation."""
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": self.render_system_prompt()}
        ]
        for msg in history:
            if msg.role == "tool":
                # Unpaired with an assistant tool_calls turn; the provider rejects it
                logger.debug("Dropping client-supplied tool message from history")
                continue
            text = msg.text()
            if msg.role == "assistant" and not text:
                continue
            messages.append({"role": msg.role, "content": text})
        return messages

    @staticmethod
    def last_user_question(history: List[ChatMessage]) -> str:
        for msg in reversed(history):
            if msg.role == "user":
                return msg.text()
        return ""

    # --- Running --------------------------------------------------------------

    def start(
        self,
        history: List[ChatMessage],
        ctx: AppContext,
        gateway: FinancialDataGateway,
    ) -> OrchestrationRun:
        """Launch the orchestration as a task writing into a fresh channel."""
        channel = EventChannel()
        result = OrchestrationResult(question=self.last_user_question(history))
        task = asyncio.create_task(self.run(history, ctx, gateway, channel, result))
        return OrchestrationRun(channel=channel, task=task, result=result, context=ctx)

    async def run(
        self,
        history: List[ChatMessage],
        ctx: AppContext,
        gateway: FinancialDataGateway,
        channel: EventChannel,
        result: Optional[OrchestrationResult] = None,
    ) -> OrchestrationResult:
        """
        Execute the tool loop, writing events into ``channel``.

        A model failure ends the run with a single generic ``error`` event;
        tool failures are folded back into the conversation instead.
        The channel is always closed on exit.
        """
        result = result or OrchestrationResult(
            question=self.last_user_question(history)
        )
        messages = self.build_messages(history)
        logger.info(
            f"Orchestration started with {len(history)} messages", extra=ctx.to_dict()
        )

        try:
            for step in range(1, self.settings.max_steps + 1):
                result.steps = step
                await channel.emit(StreamEvent(type="step", step=step))

                tool_calls = await self._stream_completion(messages, channel, result)
                if not tool_calls:
                    result.finish_reason = "stop"
                    break

                await self._run_tool_calls(tool_calls, messages, ctx, gateway, channel, result)
            else:
                # Soft truncation: keep whatever text was produced
                result.finish_reason = "step_limit"
                logger.warning(
                    f"Step cap of {self.settings.max_steps} reached", extra=ctx.to_dict()
                )

            result.completed = True
            await channel.emit(
                StreamEvent(type="finish", reason=result.finish_reason, steps=result.steps)
            )
            logger.info(
                f"Orchestration finished after {result.steps} steps ({result.finish_reason}), "
                f"{len(result.tool_calls)} tool calls",
                extra=ctx.to_dict(),
            )
        except Exception as e:
            logger.error(f"Orchestration failed: {e}", exc_info=True, extra=ctx.to_dict())
            await channel.emit(StreamEvent(type="error", error=GENERIC_FAILURE_MESSAGE))
        finally:
            await channel.close()

        return result

    async def _stream_completion(
        self,
        messages: List[Dict[str, Any]],
        channel: EventChannel,
        result: OrchestrationResult,
    ) -> List[PendingToolCall]:
        """One model invocation; text deltas are forwarded as they arrive."""
        pending: Dict[int, PendingToolCall] = {}
        text: List[str] = []

        try:
            stream = await self.client.chat.completions.create(
                model=self.settings.agent_model,
                messages=messages,
                tools=self.tools,
                tool_choice="auto",
                temperature=self.settings.temperature,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta

                if getattr(delta, "content", None):
                    text.append(delta.content)
                    result.text_parts.append(delta.content)
                    await channel.emit(StreamEvent(type="text", content=delta.content))

                for tc in getattr(delta, "tool_calls", None) or []:
                    call = pending.setdefault(tc.index, PendingToolCall())
                    if tc.id:
                        call.id = tc.id
                    function = getattr(tc, "function", None)
                    if function is not None:
                        if function.name:
                            call.name += function.name
                        if function.arguments:
                            call.arguments.append(function.arguments)
        except OpenAIError as e:
            raise ModelInvocationError(f"Model invocation failed: {e}") from e

        tool_calls = [pending[i] for i in sorted(pending)]
        for i, call in enumerate(tool_calls):
            if not call.id:
                call.id = f"call_{result.steps}_{i}"

        if tool_calls:
            messages.append(
                {
                    "role": "assistant",
                    "content": "".join(text) or None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": call.raw_arguments,
                            },
                        }
                        for call in tool_calls
                    ],
                }
            )
        return tool_calls

    async def _run_tool_calls(
        self,
        tool_calls: List[PendingToolCall],
        messages: List[Dict[str, Any]],
        ctx: AppContext,
        gateway: FinancialDataGateway,
        channel: EventChannel,
        result: OrchestrationResult,
    ) -> None:
        """Announce every call of the step, then execute them one by one."""
        for call in tool_calls:
            await channel.emit(
                StreamEvent(
                    type="tool_call",
                    tool_call_id=call.id,
                    tool=call.name,
                    state="pending",
                    args=call.parsed_arguments(),
                    message=get_tool_friendly_name(call.name),
                )
            )

        for call in tool_calls:
            tool_result = await execute_tool(
                gateway, ctx, call.id, call.name, call.raw_arguments
            )
            result.tool_calls.append(
                ToolCallRecord(
                    id=call.id,
                    name=call.name,
                    arguments=call.raw_arguments,
                    args=call.parsed_arguments() or {},
                    result=tool_result.payload,
                    duration_ms=tool_result.duration_ms,
                )
            )
            await channel.emit(
                StreamEvent(
                    type="tool_result",
                    tool_call_id=call.id,
                    tool=call.name,
                    state="result",
                    result=tool_result.payload,
                )
            )
            if self.settings.debug:
                await channel.emit(
                    StreamEvent(
                        type="debug",
                        tool_call_id=call.id,
                        tool=call.name,
                        message=f"{call.name} took {tool_result.duration_ms:.0f}ms",
                    )
                )
            messages.append(
                {
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": json.dumps(tool_result.payload, default=str),
                }
            )

    # --- Conversation log -----------------------------------------------------

    def build_log_entry(
        self, result: OrchestrationResult, ctx: AppContext
    ) -> ConversationLogEntry:
        return ConversationLogEntry(
            org_id=ctx.tenant_id,
            question=result.question,
            tool_calls=[
                {"id": tc.id, "name": tc.name, "args": tc.args, "result": tc.result}
                for tc in result.tool_calls
            ],
            response=result.answer,
            model=self.settings.agent_model,
        )

    async def persist_log(
        self,
        result: OrchestrationResult,
        ctx: AppContext,
        gateway: FinancialDataGateway,
    ) -> None:
        """
        Append the finished exchange to the conversation log.

        Best-effort: failures are logged and dropped, never raised.
        """
        if not result.completed:
            logger.info("Skipping conversation log for incomplete run", extra=ctx.to_dict())
            return
        try:
            await gateway.append_conversation_log(self.build_log_entry(result, ctx))
            logger.debug("Conversation log written", extra=ctx.to_dict())
        except Exception as e:
            logger.warning(f"Failed to log chat: {e}", extra=ctx.to_dict())

    def get_health_status(self) -> Dict[str, Any]:
        return {
            "model": self.settings.agent_model,
            "max_steps": self.settings.max_steps,
            "template_loaded": self.system_tpl is not None,
            "tool_count": len(self.tools),
        }
