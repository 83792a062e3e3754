# src/cytogate/plugins/hookspecs.py
"""pluggy hook specifications for cytogate method plugins.

Plugins implement these hooks to contribute gating and preprocessing
methods to a MethodRegistry.

Usage (implementing a plugin):
    from cytogate.plugins.hookspecs import hookimpl

    class MyPlugin:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def cytogate_get_methods(self):
            return {"mindensity": mindensity_gate}

Installed packages expose plugins through the "cytogate" entry-point group.
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from cytogate.plugins.protocols import GatingMethod

# Project name for pluggy (also the entry-point group)
PROJECT_NAME = "cytogate"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)

hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class CytogateMethodSpec:
    """Hook specifications for method plugins."""

    @hookspec
    def cytogate_get_methods(self) -> dict[str, "GatingMethod"]:  # type: ignore[empty-body]
        """Return methods keyed by name, without the registry prefix.

        Returns:
            Mapping of method name to callable
        """
