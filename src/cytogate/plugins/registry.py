# src/cytogate/plugins/registry.py
"""Method registry: explicit name -> callable mapping for gating methods.

Registry keys are the method name with the registry prefix prepended
(default "."), so a template's ``mindensity`` resolves to ``.mindensity``.
Lookup is case-sensitive. Methods arrive either by direct registration or
through pluggy hook implementations.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pluggy

from cytogate.contracts.errors import RegistrationError
from cytogate.core.dag.models import _suggest_similar
from cytogate.core.logging import get_logger
from cytogate.plugins.hookspecs import PROJECT_NAME, CytogateMethodSpec

logger = get_logger(__name__)

DEFAULT_PREFIX = "."


class MethodRegistry:
    """Explicit registry of processing methods.

    Usage:
        registry = MethodRegistry()
        registry.register("mindensity", mindensity_gate)

        @registry.method("flowClust")
        def flow_clust(data, channels, source, method, group_by, collapse, **kwargs): ...

        fn = registry.lookup("mindensity")
    """

    def __init__(self, prefix: str = DEFAULT_PREFIX) -> None:
        self._prefix = prefix
        self._methods: dict[str, Callable[..., Any]] = {}
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(CytogateMethodSpec)

    @property
    def prefix(self) -> str:
        return self._prefix

    def key(self, name: str) -> str:
        """Registry key for a method name."""
        return f"{self._prefix}{name}"

    def register(self, name: str, fn: Callable[..., Any]) -> None:
        """Register a method under name.

        Raises:
            RegistrationError: If the name is already registered
            TypeError: If fn is not callable
        """
        if not callable(fn):
            raise TypeError(f"Method '{name}' must be callable, got {type(fn).__name__}")
        key = self.key(name)
        if key in self._methods:
            raise RegistrationError(f"Method '{key}' is already registered", method=key)
        self._methods[key] = fn
        logger.debug("method registered", method=key)

    def method(self, name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of register()."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.register(name, fn)
            return fn

        return decorator

    def register_plugin(self, plugin: Any) -> None:
        """Register a pluggy plugin and the methods its hook returns."""
        self._pm.register(plugin)
        self._collect(plugin)

    def load_installed_plugins(self) -> int:
        """Load plugins advertised under the 'cytogate' entry-point group.

        Returns:
            Number of plugins loaded
        """
        before = set(self._pm.get_plugins())
        count = self._pm.load_setuptools_entrypoints(PROJECT_NAME)
        for plugin in self._pm.get_plugins() - before:
            self._collect(plugin)
        return count

    def _collect(self, plugin: Any) -> None:
        hook_impls = [impl for impl in self._pm.hook.cytogate_get_methods.get_hookimpls() if impl.plugin is plugin]
        for impl in hook_impls:
            methods = impl.function()
            for name, fn in methods.items():
                self.register(name, fn)
            logger.debug("plugin loaded", plugin=self._pm.get_name(plugin), methods=sorted(methods))

    def is_registered(self, name: str) -> bool:
        return self.key(name) in self._methods

    def lookup(self, name: str) -> Callable[..., Any]:
        """Resolve a method name to its callable.

        Raises:
            RegistrationError: If no method is registered under the prefixed key
        """
        key = self.key(name)
        try:
            return self._methods[key]
        except KeyError:
            suggestions = _suggest_similar(key, list(self._methods))
            hint = f" Did you mean: {', '.join(suggestions)}?" if suggestions else ""
            raise RegistrationError(f"Can't gate using unregistered method {key}.{hint}", method=key) from None

    def names(self) -> list[str]:
        """Registered keys, sorted."""
        return sorted(self._methods)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.is_registered(name)

    def __len__(self) -> int:
        return len(self._methods)
