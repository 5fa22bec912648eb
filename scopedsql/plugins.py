"""
Plugin Registry for scopedsql

Entity plugins are looked up by a stable id in a registry filled at import
time; nothing is loaded from disk by name.

Usage:
    from scopedsql.plugins import Plugin, register_plugin, run_plugins

    @register_plugin("orders.audit")
    class OrderAudit(Plugin):
        def execute(self, context):
            self.create_record(context, {"action": "created"}, table_name="audit")

    bindings = load_entity_plugins("plugins.yaml")
    run_plugins(context, bindings.get("orders", []))

plugins.yaml:
    entities:
      orders:
        plugins:
          - orders.audit
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Type, Union

import yaml
from pydantic import BaseModel, Field

from scopedsql.access import DataAccess
from scopedsql.config import Settings, get_settings
from scopedsql.exceptions import ConfigurationError, PluginError, PluginNotFoundError
from scopedsql.models import ExecutionContext

logger = logging.getLogger(__name__)


class Plugin(DataAccess, ABC):
    """
    Base class for entity plugins.

    Subclasses implement execute() and use the inherited DataAccess
    operations against context.connection.
    """

    plugin_id: str = ""

    @abstractmethod
    def execute(self, context: ExecutionContext) -> None:
        """Run the plugin for one operation."""


class EntityPlugin(BaseModel):
    """Reference from an entity to a registered plugin."""

    plugin_id: str = Field(..., description="Registered plugin id")
    entity_name: Optional[str] = Field(None, description="Entity the plugin is bound to")


# =============================================================================
# PLUGIN REGISTRY
# =============================================================================

# Map of plugin id -> plugin class
_PLUGIN_REGISTRY: Dict[str, Type[Plugin]] = {}


def register_plugin(plugin_id: str) -> Callable[[Type[Plugin]], Type[Plugin]]:
    """
    Class decorator registering a Plugin subclass under ``plugin_id``.

    Raises:
        PluginError: If the class is not a Plugin or the id is taken by
            another class
    """
    def decorator(plugin_class: Type[Plugin]) -> Type[Plugin]:
        if not (isinstance(plugin_class, type) and issubclass(plugin_class, Plugin)):
            raise PluginError(f"{plugin_class!r} is not a Plugin subclass")

        existing = _PLUGIN_REGISTRY.get(plugin_id)
        if existing is not None and existing is not plugin_class:
            raise PluginError(
                f"Plugin id already registered: {plugin_id}",
                details={"plugin_id": plugin_id, "class": existing.__name__},
            )

        plugin_class.plugin_id = plugin_id
        _PLUGIN_REGISTRY[plugin_id] = plugin_class
        logger.info(f"Registered plugin: {plugin_id}")
        return plugin_class

    return decorator


def unregister_plugin(plugin_id: str) -> None:
    """Remove a plugin id from the registry (no-op if absent)."""
    _PLUGIN_REGISTRY.pop(plugin_id, None)


def list_plugins() -> List[str]:
    """Get list of registered plugin ids."""
    return list(_PLUGIN_REGISTRY.keys())


def is_plugin_registered(plugin_id: str) -> bool:
    """Check if a plugin id has a registered implementation."""
    return plugin_id in _PLUGIN_REGISTRY


def get_plugin(plugin_id: str) -> Type[Plugin]:
    """
    Look up a plugin class by id.

    Raises:
        PluginNotFoundError: If the id is not registered
    """
    try:
        return _PLUGIN_REGISTRY[plugin_id]
    except KeyError:
        available = ", ".join(list_plugins()) or "none"
        raise PluginNotFoundError(
            f"Unknown plugin: {plugin_id}. Available: {available}",
            details={"plugin_id": plugin_id},
        ) from None


def run_plugins(
    context: ExecutionContext,
    plugins: Iterable[Union[EntityPlugin, str]],
    settings: Optional[Settings] = None,
) -> None:
    """
    Execute plugins in order against one context.

    Every id is resolved before any plugin runs, so an unknown id fails the
    whole batch up front.

    Raises:
        PluginNotFoundError: If any id is not registered
    """
    ids = [p.plugin_id if isinstance(p, EntityPlugin) else p for p in plugins]
    classes = [get_plugin(plugin_id) for plugin_id in ids]

    for plugin_id, plugin_class in zip(ids, classes):
        logger.debug(f"Executing plugin: {plugin_id}")
        plugin_class(settings=settings).execute(context)


# =============================================================================
# ENTITY BINDINGS
# =============================================================================

def load_entity_plugins(path: Optional[Union[str, Path]] = None) -> Dict[str, List[EntityPlugin]]:
    """
    Load entity -> plugin bindings from a YAML file.

    Args:
        path: YAML file with an ``entities`` mapping (defaults to
              Settings.plugins_file)

    Returns:
        Dict of entity name -> ordered EntityPlugin references

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    path = path or get_settings().plugins_file
    if not path:
        raise ConfigurationError("No plugin file configured (set SCOPEDSQL_PLUGINS_FILE)")

    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Plugin file not found: {path}", details={"path": str(path)})

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}", details={"path": str(path)}) from e

    entities = data.get("entities", {}) if isinstance(data, dict) else None
    if not isinstance(entities, dict):
        raise ConfigurationError(f"'entities' must be a mapping in {path}", details={"path": str(path)})

    bindings: Dict[str, List[EntityPlugin]] = {}
    for entity_name, entry in entities.items():
        entry = entry or {}
        plugin_ids = (entry.get("plugins") or []) if isinstance(entry, dict) else None
        if not isinstance(plugin_ids, list):
            raise ConfigurationError(
                f"'plugins' for entity '{entity_name}' must be a list in {path}",
                details={"path": str(path), "entity": entity_name},
            )
        bindings[entity_name] = [
            EntityPlugin(plugin_id=str(plugin_id), entity_name=entity_name)
            for plugin_id in plugin_ids
        ]

    logger.info(f"Loaded plugin bindings for {len(bindings)} entit(ies) from {path}")
    return bindings
