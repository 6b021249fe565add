"""
conftest.py — In-memory fakes for the realtime stack.

Nothing here opens a socket or calls a provider: the transport hands out
FakeChannel objects, media is backed by lists, and sequencer timers only
fire when a test calls ManualScheduler.fire_all().
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from talkbridge.agent.core.contracts import PluginBase
from talkbridge.errors import UpstreamAnalysisError
from talkbridge.models import FunctionCallRequest, OfferArtifact
from talkbridge.realtime.conversation import Conversation
from talkbridge.realtime.dispatcher import ToolContext
from talkbridge.realtime.media import AudioInputTrack, AudioOutput, MediaProvider
from talkbridge.realtime.sequencer import EventSequencer
from talkbridge.realtime.session import VoiceSession
from talkbridge.realtime.transport import EventChannel, RealtimeTransport
from talkbridge.realtime.visuals import VisualDeferralQueue
from talkbridge.store import SessionFlags


async def settle(rounds: int = 20) -> None:
    """Let background reader/pump tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ── Timers ─────────────────────────────────────────────────────────────────────

class ManualTimer:
    def __init__(self, delay: float, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if self.cancelled or self.fired:
            return
        self.fired = True
        self.callback()


class ManualScheduler:
    def __init__(self):
        self.timers: List[ManualTimer] = []

    def __call__(self, delay: float, callback) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_all(self) -> None:
        for timer in list(self.timers):
            timer.fire()


# ── Transport ──────────────────────────────────────────────────────────────────

class FakeChannel(EventChannel):
    def __init__(self):
        self._open = True
        self.sent: List[Dict[str, Any]] = []
        self._incoming: asyncio.Queue = asyncio.Queue()

    @property
    def is_open(self) -> bool:
        return self._open

    async def send_text(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def receive_text(self) -> Optional[str]:
        return await self._incoming.get()

    async def close(self) -> None:
        if self._open:
            self._open = False
            self._incoming.put_nowait(None)

    def feed(self, event) -> None:
        """Queue a provider event (dict) or a raw frame (str)."""
        self._incoming.put_nowait(event if isinstance(event, str) else json.dumps(event))

    def remote_close(self) -> None:
        self._open = False
        self._incoming.put_nowait(None)

    def sent_types(self) -> List[str]:
        return [e.get("type") for e in self.sent]


class FakeTransport(RealtimeTransport):
    def __init__(self, fail: Optional[Exception] = None, gate: Optional[asyncio.Event] = None):
        self.fail = fail
        self.gate = gate
        self.channels: List[FakeChannel] = []
        self.tokens: List[str] = []

    @property
    def channel(self) -> FakeChannel:
        return self.channels[-1]

    async def open(self, token: str) -> EventChannel:
        self.tokens.append(token)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        channel = FakeChannel()
        self.channels.append(channel)
        return channel


# ── Media ──────────────────────────────────────────────────────────────────────

class FakeMedia(MediaProvider):
    def __init__(self, microphone_granted: bool = True):
        self.microphone_granted = microphone_granted
        self.played: List[str] = []
        self.inputs: List[AudioInputTrack] = []
        self.outputs: List[AudioOutput] = []

    def open_input(self) -> AudioInputTrack:
        from talkbridge.errors import MediaAccessError
        if not self.microphone_granted:
            raise MediaAccessError("denied")
        track = AudioInputTrack()
        self.inputs.append(track)
        return track

    def open_output(self) -> AudioOutput:
        output = AudioOutput(self.played.append)
        self.outputs.append(output)
        return output


class FakeTokenProvider:
    def __init__(self, token: str = "ek_test", fail: Optional[Exception] = None):
        self.token = token
        self.fail = fail
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, instructions: str, tools: List[Dict[str, Any]]) -> str:
        self.calls.append({"instructions": instructions, "tools": tools})
        if self.fail is not None:
            raise self.fail
        return self.token


class FakeAnalysis:
    def __init__(self, photo_result: str = "A temple with golden roofs", fail: bool = False):
        self.photo_result = photo_result
        self.fail = fail
        self.photo_calls: List[Dict[str, Any]] = []
        self.vitals_calls: List[Dict[str, Any]] = []
        self.searches: List[Dict[str, Any]] = []

    async def analyze_photo(self, image: str, prompt: Optional[str] = None) -> str:
        self.photo_calls.append({"image": image, "prompt": prompt})
        if self.fail:
            raise UpstreamAnalysisError("vision down")
        return self.photo_result

    async def analyze_vitals(self, image: str, context: Optional[Dict[str, Any]] = None) -> str:
        self.vitals_calls.append({"image": image, "context": context})
        return "**Vitals Assessment**\n\n• Alert and responsive"

    async def search(self, query: str, location: Optional[str] = None) -> Dict[str, Any]:
        self.searches.append({"query": query, "location": location})
        return {"success": True, "source": "google", "results": [], "summary": f"Results for {query}"}


# ── Plugins & sessions ─────────────────────────────────────────────────────────

class DemoPlugin(PluginBase):
    """Two-screen plugin with a card tool, a failing tool and a navigation tool."""

    def __init__(self):
        self.replies: List[str] = []

    @property
    def plugin_id(self) -> str:
        return "demo"

    @property
    def instructions(self) -> str:
        return "You are a test assistant."

    @property
    def screens(self) -> List[str]:
        return ["home", "details"]

    def create_initial_state(self) -> Dict[str, Any]:
        return {"screen": "home", "meta": {"plugin_id": "demo"}, "domain": {"demo": {}}, "state_version": 1}

    def register_tools(self, registry) -> None:
        async def show_card(ctx):
            ctx.enqueue_visual(OfferArtifact(offer_id="card", brand="Demo", title=ctx.arguments.get("title", "Card")))
            await ctx.send_result("Showed card")

        def boom(ctx):
            raise RuntimeError("tool exploded")

        async def go_details(ctx):
            await ctx.navigate("details")
            await ctx.send_result("Navigated to details")

        registry.register("show_card", show_card, "Show a card")
        registry.register("boom", boom, "Always fails")
        registry.register("go_details", go_details, "Open details")

    async def on_assistant_reply(self, session, text: str) -> None:
        self.replies.append(text)


class RecordingSession:
    """The slice of VoiceSession a ToolContext touches, with every effect recorded."""

    def __init__(self, plugin: Optional[PluginBase] = None, analysis=None):
        self.plugin = plugin
        self.app_state = plugin.create_initial_state() if plugin else {"screen": "home", "domain": {}}
        self.flags = SessionFlags(plugin.initial_flags() if plugin else {})
        self.analysis = analysis
        self.conversation = Conversation()
        self.visuals = VisualDeferralQueue()
        self.scheduler = ManualScheduler()
        self.sequencer = EventSequencer(self.conversation, self.visuals, scheduler=self.scheduler)
        self.results: List[tuple] = []
        self.navigations: List[str] = []
        self.paused = False
        self.channel_open = True

    async def send_function_result(self, call_id, output: str) -> bool:
        if not self.channel_open:
            return False
        self.results.append((call_id, output))
        return True

    async def navigate(self, screen: str) -> None:
        self.navigations.append(screen)
        self.app_state["screen"] = screen

    async def pause(self) -> bool:
        self.paused = True
        return True

    @property
    def outputs(self) -> List[str]:
        return [output for _call_id, output in self.results]


async def run_tool(session, handler, call_id: str = "call_1", **arguments) -> ToolContext:
    ctx = ToolContext(FunctionCallRequest(name=getattr(handler, "__name__", "tool"), arguments=arguments, call_id=call_id), session)
    result = handler(ctx)
    if asyncio.iscoroutine(result):
        await result
    return ctx


def response_done(*calls: Dict[str, Any], extra_output: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    output = list(extra_output or [])
    for index, call in enumerate(calls, start=1):
        arguments = call.get("arguments", {})
        output.append({
            "type": "function_call",
            "name": call["name"],
            "call_id": call.get("call_id", f"call_{index}"),
            "arguments": arguments if isinstance(arguments, str) else json.dumps(arguments),
        })
    return {"type": "response.done", "response": {"output": output}}


# ── Fixtures ───────────────────────────────────────────────────────────────────

@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def token_provider():
    return FakeTokenProvider()


@pytest.fixture
def demo_plugin():
    return DemoPlugin()


@pytest.fixture
def make_session(token_provider, transport, media, scheduler):
    created: List[VoiceSession] = []

    def _make(plugin: PluginBase, **kwargs) -> VoiceSession:
        kwargs.setdefault("scheduler", scheduler)
        session = VoiceSession(plugin, token_provider, transport, media, **kwargs)
        created.append(session)
        return session

    yield _make
