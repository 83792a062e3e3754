# src/cytogate/core/dag/__init__.py
"""Population DAG: records, the GatingTemplate graph, and its builder."""

from cytogate.core.dag.graph import GatingTemplate
from cytogate.core.dag.models import (
    GroupBy,
    MethodDescriptor,
    PopulationNode,
    TemplateEdge,
    method_kind_for,
)

__all__ = [
    "GatingTemplate",
    "GroupBy",
    "MethodDescriptor",
    "PopulationNode",
    "TemplateEdge",
    "method_kind_for",
]
