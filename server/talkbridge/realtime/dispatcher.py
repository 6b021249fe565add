"""
dispatcher.py — Function-call dispatch.

Function calls are only acted on once the provider reports the whole
model turn as finished (response.done). The streaming
response.function_call_arguments.* events carry partial arguments and are
never executed, so a call cannot fire twice.

Within one turn, calls run in the order the provider listed them, one at
a time. A bad argument payload or an unknown name is logged and skipped. A
handler that raises before answering gets a short failure result sent
for its call_id. Either way the remaining calls still run.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Union

from talkbridge.errors import FunctionArgumentError
from talkbridge.models import FunctionCallRequest, VisualArtifact
from talkbridge.store import SessionFlags

if TYPE_CHECKING:
    from talkbridge.realtime.session import VoiceSession

logger = logging.getLogger(__name__)


# ── Registry ──────────────────────────────────────────────────────────────────

ToolHandler = Callable[["ToolContext"], Union[None, Awaitable[None]]]

_EMPTY_PARAMETERS = {"type": "object", "properties": {}}


@dataclass
class ToolSpec:
    name: str
    handler: ToolHandler
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=lambda: dict(_EMPTY_PARAMETERS))

    def schema(self) -> Dict[str, Any]:
        """Tool definition in the shape the realtime session config expects."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


class FunctionRegistry:
    def __init__(self) -> None:
        self._tools: Dict[str, ToolSpec] = {}

    def register(
        self,
        name: str,
        handler: ToolHandler,
        description: str = "",
        parameters: Optional[Dict[str, Any]] = None,
    ) -> None:
        if name in self._tools:
            logger.warning("[Registry] replacing handler for %s", name)
        self._tools[name] = ToolSpec(
            name=name,
            handler=handler,
            description=description,
            parameters=parameters or dict(_EMPTY_PARAMETERS),
        )

    def tool(self, name: str, description: str = "", parameters: Optional[Dict[str, Any]] = None):
        """Decorator form of register()."""
        def _wrap(fn: ToolHandler) -> ToolHandler:
            self.register(name, fn, description, parameters)
            return fn
        return _wrap

    def get(self, name: str) -> Optional[ToolSpec]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def schemas(self) -> List[Dict[str, Any]]:
        return [spec.schema() for spec in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools


# ── Argument parsing ──────────────────────────────────────────────────────────

def parse_arguments(raw: Any) -> Dict[str, Any]:
    """Decode function-call arguments. Raises FunctionArgumentError if they are not a JSON object."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str):
        try:
            value = json.loads(raw)
        except ValueError as exc:
            raise FunctionArgumentError(f"Arguments are not valid JSON: {exc}") from exc
        if isinstance(value, dict):
            return value
        raise FunctionArgumentError(f"Arguments decode to {type(value).__name__}, expected an object")
    raise FunctionArgumentError(f"Unsupported argument payload type {type(raw).__name__}")


def extract_function_calls(event: Dict[str, Any]) -> List[FunctionCallRequest]:
    """Pull the completed function calls out of a response.done event, in output order."""
    response = event.get("response") or {}
    output = response.get("output") or []
    calls: List[FunctionCallRequest] = []
    for item in output:
        if not isinstance(item, dict) or item.get("type") != "function_call":
            continue
        name = item.get("name") or ""
        try:
            arguments = parse_arguments(item.get("arguments"))
        except FunctionArgumentError as exc:
            logger.warning(f"[Dispatcher] {name}: {exc}; using empty arguments")
            arguments = {}
        calls.append(FunctionCallRequest(name=name, arguments=arguments, call_id=item.get("call_id")))
    return calls


# ── Handler context ───────────────────────────────────────────────────────────

class ToolContext:
    """What a handler can see and do for one function call."""

    def __init__(self, request: FunctionCallRequest, session: "VoiceSession") -> None:
        self.request = request
        self.session = session
        self.result_sent = False

    @property
    def name(self) -> str:
        return self.request.name

    @property
    def call_id(self) -> Optional[str]:
        return self.request.call_id

    @property
    def arguments(self) -> Dict[str, Any]:
        return self.request.arguments

    @property
    def flags(self) -> SessionFlags:
        return self.session.flags

    @property
    def state(self) -> Dict[str, Any]:
        return self.session.app_state

    @property
    def analysis(self):
        return self.session.analysis

    async def send_result(self, output: str) -> bool:
        sent = await self.session.send_function_result(self.call_id, output)
        self.result_sent = self.result_sent or sent
        return sent

    def enqueue_visual(self, artifact: VisualArtifact) -> None:
        self.session.visuals.enqueue(artifact)

    def announce(self, text: str) -> None:
        self.session.sequencer.commit_assistant(text)

    async def navigate(self, screen: str) -> None:
        await self.session.navigate(screen)

    async def pause(self) -> bool:
        return await self.session.pause()


# ── Dispatcher ────────────────────────────────────────────────────────────────

class FunctionCallDispatcher:
    def __init__(self, registry: FunctionRegistry, context_factory: Callable[[FunctionCallRequest], ToolContext]) -> None:
        self.registry = registry
        self._context_factory = context_factory

    async def handle_response_done(self, event: Dict[str, Any]) -> int:
        """Run every function call of a finished turn. Returns how many handlers completed."""
        calls = extract_function_calls(event)
        if calls:
            logger.info("[Dispatcher] %d function call(s) in response.done", len(calls))
        completed = 0
        for index, call in enumerate(calls, start=1):
            logger.info("[Dispatcher] executing %d/%d: %s", index, len(calls), call.name)
            if await self.dispatch(call):
                completed += 1
        return completed

    async def dispatch(self, call: FunctionCallRequest) -> bool:
        spec = self.registry.get(call.name)
        if spec is None:
            logger.warning("[Dispatcher] unknown function %r, ignoring", call.name)
            return False

        ctx = self._context_factory(call)
        try:
            result = spec.handler(ctx)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.error(f"[Dispatcher] handler {call.name} failed: {exc}", exc_info=True)
            if not ctx.result_sent and call.call_id:
                # The provider holds the turn open until every call_id is answered.
                await ctx.send_result(f"{call.name} failed: {exc}")
            return False

        if not ctx.result_sent:
            logger.info("[Dispatcher] %s finished without a function result", call.name)
        return True
