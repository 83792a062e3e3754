# src/cytogate/plugins/__init__.py
"""Method plugins: registry, hook specifications and collaborator protocols."""

from cytogate.plugins.hookspecs import hookimpl
from cytogate.plugins.protocols import ClusterClient, DataSource, GatingMethod, PopulationStore
from cytogate.plugins.registry import MethodRegistry

__all__ = [
    "ClusterClient",
    "DataSource",
    "GatingMethod",
    "MethodRegistry",
    "PopulationStore",
    "hookimpl",
]
