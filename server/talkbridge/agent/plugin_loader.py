"""
plugin_loader.py — Startup discovery of the variant plugins.

Every sub-package of talkbridge.agent.plugins that ships a plugin.py
module defining a PluginBase subclass is instantiated and registered.
A variant that fails to import or is rejected by the registry is logged
and skipped, so one broken variant never takes the server down.
"""

from __future__ import annotations

import importlib
import importlib.util
import inspect
import logging
import pkgutil
from types import ModuleType
from typing import List, Optional, Type

from talkbridge.agent.core.contracts import PluginBase
from talkbridge.agent.core.registry import register

logger = logging.getLogger(__name__)

PLUGINS_PACKAGE = "talkbridge.agent.plugins"


def find_plugin_class(module: ModuleType) -> Optional[Type[PluginBase]]:
    """First concrete PluginBase subclass defined in the module itself."""
    for _name, obj in inspect.getmembers(module, inspect.isclass):
        if (
            issubclass(obj, PluginBase)
            and obj is not PluginBase
            and obj.__module__ == module.__name__
            and not inspect.isabstract(obj)
        ):
            return obj
    return None


def load_all_plugins() -> List[str]:
    """Register every variant found on disk. Returns the registered plugin ids."""
    package = importlib.import_module(PLUGINS_PACKAGE)
    registered: List[str] = []

    for _finder, name, is_package in pkgutil.iter_modules(package.__path__):
        if not is_package:
            continue
        module_path = f"{PLUGINS_PACKAGE}.{name}.plugin"
        if importlib.util.find_spec(module_path) is None:
            logger.debug("[PluginLoader] %s has no plugin module, skipping", name)
            continue

        try:
            module = importlib.import_module(module_path)
        except Exception as exc:
            logger.warning("[PluginLoader] Could not import %s: %s", module_path, exc)
            continue

        plugin_cls = find_plugin_class(module)
        if plugin_cls is None:
            logger.warning("[PluginLoader] No PluginBase subclass in %s, skipping", module_path)
            continue

        try:
            plugin = plugin_cls()
            register(plugin)
        except Exception as exc:
            logger.warning("[PluginLoader] Rejected %s: %s", plugin_cls.__name__, exc)
            continue
        registered.append(plugin.plugin_id)

    logger.info("[PluginLoader] Loaded plugins: %s", registered)
    return registered
