"""
test_plugin_contract.py — PluginBase contract tests.

Every plugin discovered by the plugin loader must pass all tests here.
These tests run offline (no server, no provider) using the plugin directly.

Run:
    python -m pytest server/tests/test_plugin_contract.py -v
"""

import re

import pytest

from talkbridge.agent.core.contracts import PluginBase
from talkbridge.agent.core.registry import collect_tools, describe_plugins, get_plugin, list_plugins, register
from talkbridge.agent.plugin_loader import load_all_plugins
from talkbridge.realtime.dispatcher import FunctionRegistry

load_all_plugins()

# ── Fixtures ───────────────────────────────────────────────────────────────────

@pytest.fixture(params=list_plugins())
def plugin(request):
    return get_plugin(request.param)


# ── Contract: Identity ─────────────────────────────────────────────────────────

def test_loader_finds_both_variants():
    assert {"tourist", "careflow"} <= set(list_plugins())


def test_plugin_id_is_slug(plugin):
    """plugin_id must be lowercase with underscores only (no spaces, no hyphens)."""
    assert re.match(r'^[a-z][a-z0-9_]*$', plugin.plugin_id), (
        f"plugin_id {plugin.plugin_id!r} must match ^[a-z][a-z0-9_]*$"
    )


def test_state_version_is_positive_int(plugin):
    assert isinstance(plugin.state_version, int)
    assert plugin.state_version >= 1


def test_unknown_agent_raises_key_error():
    with pytest.raises(KeyError, match="Available"):
        get_plugin("does_not_exist")


class _SilentPlugin(PluginBase):
    @property
    def plugin_id(self):
        return "silent"

    @property
    def instructions(self):
        return "A plugin that never exposes a tool to the model."

    @property
    def screens(self):
        return ["home"]

    def create_initial_state(self):
        return {"screen": "home", "meta": {}, "domain": {"silent": {}}, "state_version": 1}

    def register_tools(self, registry):
        return None


def test_plugin_without_tools_is_rejected():
    with pytest.raises(ValueError, match="no tools"):
        register(_SilentPlugin())
    assert "silent" not in list_plugins()


def test_description_matches_registered_tools(plugin):
    described = next(d for d in describe_plugins() if d["id"] == plugin.plugin_id)
    assert described["tools"] == collect_tools(plugin).names()
    assert described["screens"] == list(plugin.screens)


# ── Contract: Initial State ────────────────────────────────────────────────────

REQUIRED_COMMON_KEYS = ["screen", "meta", "domain", "state_version"]


def test_initial_state_has_all_common_keys(plugin):
    state = plugin.create_initial_state()
    missing = [k for k in REQUIRED_COMMON_KEYS if k not in state]
    assert not missing, (
        f"Plugin {plugin.plugin_id!r} initial state is missing keys: {missing}"
    )


def test_initial_screen_is_declared(plugin):
    state = plugin.create_initial_state()
    assert state["screen"] in plugin.screens
    assert state["screen"] == plugin.initial_screen


def test_initial_state_domain_contains_plugin_namespace(plugin):
    """Plugin data lives under its own plugin_id so variants never share keys."""
    state = plugin.create_initial_state()
    assert plugin.plugin_id in state["domain"]


def test_initial_state_version_matches_plugin(plugin):
    state = plugin.create_initial_state()
    assert state["state_version"] == plugin.state_version


def test_initial_states_are_independent(plugin):
    first = plugin.create_initial_state()
    first["domain"][plugin.plugin_id]["scribble"] = True
    assert "scribble" not in plugin.create_initial_state()["domain"][plugin.plugin_id]


# ── Contract: Tools ────────────────────────────────────────────────────────────

def test_register_tools_produces_realtime_schemas(plugin):
    registry = FunctionRegistry()
    plugin.register_tools(registry)
    schemas = registry.schemas()
    assert schemas, f"Plugin {plugin.plugin_id!r} registered no tools"
    for schema in schemas:
        assert schema["type"] == "function"
        assert re.match(r'^[a-z][a-z0-9_]*$', schema["name"])
        assert schema["parameters"]["type"] == "object"
        for required in schema["parameters"].get("required", []):
            assert required in schema["parameters"]["properties"]


def test_instructions_are_non_empty(plugin):
    assert isinstance(plugin.instructions, str)
    assert len(plugin.instructions.strip()) > 50


# ── Contract: capabilities ─────────────────────────────────────────────────────

def test_capabilities_returns_dict(plugin):
    caps = plugin.capabilities
    assert isinstance(caps, dict)
