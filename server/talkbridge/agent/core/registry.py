"""
registry.py — Plugin registration and lookup.

The plugin loader registers one instance per variant at startup. Each
plugin's tool set is collected once here, so a variant that exposes no
tools, or a tool the realtime session config would reject, never reaches
a client. The /ws endpoint resolves the agent id from its query string
with get_plugin(); the health endpoint lists what is available.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from talkbridge.agent.core.contracts import PluginBase
from talkbridge.realtime.dispatcher import FunctionRegistry

logger = logging.getLogger(__name__)

_plugins: Dict[str, PluginBase] = {}
_tool_names: Dict[str, List[str]] = {}


def collect_tools(plugin: PluginBase) -> FunctionRegistry:
    """Run the plugin's register_tools() against a fresh FunctionRegistry."""
    tools = FunctionRegistry()
    plugin.register_tools(tools)
    return tools


def register(plugin: PluginBase) -> None:
    """
    Register a plugin instance, replacing any earlier one with the same id.

    Raises ValueError if the plugin has no instructions, no tools, or an
    initial screen it does not declare.
    """
    if not plugin.instructions.strip():
        raise ValueError(f"Plugin {plugin.plugin_id!r} has empty instructions")
    if plugin.initial_screen not in plugin.screens:
        raise ValueError(
            f"Plugin {plugin.plugin_id!r} starts on undeclared screen {plugin.initial_screen!r}"
        )
    names = collect_tools(plugin).names()
    if not names:
        raise ValueError(f"Plugin {plugin.plugin_id!r} registers no tools")

    if plugin.plugin_id in _plugins:
        logger.warning("[AgentRegistry] replacing plugin %s", plugin.plugin_id)
    _plugins[plugin.plugin_id] = plugin
    _tool_names[plugin.plugin_id] = names
    logger.info("[AgentRegistry] Registered plugin: %s (%d tools, %d screens)",
                plugin.plugin_id, len(names), len(plugin.screens))


def get_plugin(agent_id: str) -> PluginBase:
    """
    Return the registered plugin for agent_id.

    Raises KeyError if agent_id is not registered, so callers can close
    the WebSocket with a 4000 code (see main.py).
    """
    plugin = _plugins.get(agent_id)
    if plugin is None:
        raise KeyError(
            f"No plugin registered for agent_id={agent_id!r}. "
            f"Available: {list(_plugins)}"
        )
    return plugin


def list_plugins() -> List[str]:
    return list(_plugins)


def describe_plugins() -> List[Dict[str, Any]]:
    """Id, screens and tool names of every registered plugin."""
    return [
        {
            "id": plugin_id,
            "initial_screen": plugin.initial_screen,
            "screens": list(plugin.screens),
            "tools": list(_tool_names[plugin_id]),
        }
        for plugin_id, plugin in _plugins.items()
    ]
