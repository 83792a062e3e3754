# src/cytogate/core/dag/graph.py
"""GatingTemplate class: the population DAG and its query/traversal operations.

Construction logic lives in builder.py; this module contains the graph class
with all query methods. The from_rows() classmethod is a thin facade that
delegates to builder.build_template().

Storage is a typed node table keyed by path and an edge table keyed by
(parent, child). A NetworkX DiGraph mirrors the topology for cycle detection
and topological sorting.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any

import networkx as nx

from cytogate.contracts.errors import TemplateValidationError
from cytogate.contracts.types import ROOT, PopulationPath
from cytogate.core.dag.models import MethodDescriptor, PopulationNode, TemplateEdge, _suggest_similar

if TYPE_CHECKING:
    from cytogate.core.template.rows import TemplateRow


class GatingTemplate:
    """Population DAG built from a gating template.

    Built once, then frozen. The dispatcher treats it as a read-only
    traversal structure.
    """

    def __init__(self, name: str = "default") -> None:
        self._name = name
        self._nodes: dict[PopulationPath, PopulationNode] = {}
        self._edges: dict[tuple[PopulationPath, PopulationPath], TemplateEdge] = {}
        self._insertion: dict[PopulationPath, int] = {}
        self._graph: nx.DiGraph[str] = nx.DiGraph()
        self._frozen = False
        self.add_node(PopulationNode.root())

    @property
    def name(self) -> str:
        return self._name

    @property
    def node_count(self) -> int:
        """Number of populations, including the root."""
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        """Number of edges, data and ordering-only."""
        return len(self._edges)

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def __contains__(self, path: object) -> bool:
        return path in self._nodes

    def __iter__(self) -> Iterator[PopulationNode]:
        return iter(self._nodes.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GatingTemplate):
            return NotImplemented
        return (
            self._name == other._name
            and list(self._nodes.items()) == list(other._nodes.items())
            and list(self._edges.items()) == list(other._edges.items())
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"GatingTemplate(name={self._name!r}, nodes={self.node_count}, edges={self.edge_count})"

    # === Construction (builder only) ===

    def _check_mutable(self) -> None:
        if self._frozen:
            raise TemplateValidationError(f"Gating template '{self._name}' is frozen and cannot be modified")

    def add_node(self, node: PopulationNode) -> None:
        """Add a population.

        Raises:
            TemplateValidationError: If the template is frozen or the path exists
        """
        self._check_mutable()
        if node.path in self._nodes:
            raise TemplateValidationError(f"Duplicate population path '{node.path}'")
        self._insertion[node.path] = len(self._insertion)
        self._nodes[node.path] = node
        self._graph.add_node(node.path)

    def add_edge(self, edge: TemplateEdge) -> None:
        """Add a data or ordering-only edge.

        An ordering-only edge between two populations already joined by a data
        edge is folded into it; the data edge already orders the pair.

        Raises:
            TemplateValidationError: If the template is frozen, an endpoint is
                unknown, or the pair already has an edge
        """
        self._check_mutable()
        for endpoint in (edge.parent, edge.child):
            if endpoint not in self._nodes:
                raise TemplateValidationError(f"Edge {edge.parent} -> {edge.child} references unknown population '{endpoint}'")

        key = (edge.parent, edge.child)
        existing = self._edges.get(key)
        if existing is not None:
            if edge.is_reference and not existing.is_reference:
                return
            raise TemplateValidationError(f"Duplicate edge {edge.parent} -> {edge.child}")
        self._edges[key] = edge
        self._graph.add_edge(edge.parent, edge.child)

    def freeze(self) -> None:
        """Validate the structure and make the template immutable."""
        self.validate()
        self._graph = nx.freeze(self._graph)
        self._frozen = True

    def validate(self) -> None:
        """Validate the DAG structure.

        Validates:
        1. Graph is acyclic
        2. Every non-root population has exactly one data (parent) edge
        3. Every population is reachable from the root

        Raises:
            TemplateValidationError: If validation fails
        """
        if not nx.is_directed_acyclic_graph(self._graph):
            try:
                cycle = nx.find_cycle(self._graph)
                cycle_str = " -> ".join(f"{edge[0]}" for edge in cycle)
                raise TemplateValidationError(f"Gating template contains a cycle: {cycle_str}")
            except nx.NetworkXNoCycle:
                raise TemplateValidationError("Gating template contains a cycle") from None

        for path in self._nodes:
            if path == ROOT:
                continue
            parents = [edge.parent for edge in self._incoming(path) if not edge.is_reference]
            if len(parents) != 1:
                raise TemplateValidationError(f"Population '{path}' must have exactly one parent, found {len(parents)}")

        unreachable = set(self._nodes) - nx.descendants(self._graph, ROOT) - {ROOT}
        if unreachable:
            raise TemplateValidationError(f"Population(s) not reachable from root: {', '.join(sorted(unreachable))}")

    # === Traversal ===

    def topological_order(self) -> list[PopulationPath]:
        """Return populations in dependency order.

        Both data and ordering-only edges are respected. Ties are broken by
        template row order so traversal is deterministic.
        """
        try:
            return [
                PopulationPath(path)
                for path in nx.lexicographical_topological_sort(self._graph, key=lambda path: self._insertion[PopulationPath(path)])
            ]
        except nx.NetworkXUnfeasible as e:
            raise TemplateValidationError(f"Cannot sort gating template: {e}") from e

    def get_nx_graph(self) -> nx.DiGraph[str]:
        """Return a frozen copy of the topology graph."""
        return nx.freeze(self._graph.copy())  # type: ignore[no-any-return]

    # === Queries ===

    def get_node(self, path: str) -> PopulationNode:
        """Get a population by path.

        Raises:
            KeyError: If the population doesn't exist
        """
        try:
            return self._nodes[PopulationPath(path)]
        except KeyError:
            suggestions = _suggest_similar(path, [str(p) for p in self._nodes])
            hint = f" Did you mean: {', '.join(suggestions)}?" if suggestions else ""
            raise KeyError(f"Population not found: {path}.{hint}") from None

    def get_nodes(self) -> list[PopulationNode]:
        """All populations in insertion order, root first."""
        return list(self._nodes.values())

    def find_by_alias(self, alias: str) -> list[PopulationNode]:
        return [node for node in self._nodes.values() if alias in node.aliases]

    def get_edges(self, include_references: bool = True) -> list[TemplateEdge]:
        return [edge for edge in self._edges.values() if include_references or not edge.is_reference]

    def get_edge(self, parent: str, child: str) -> TemplateEdge:
        try:
            return self._edges[(PopulationPath(parent), PopulationPath(child))]
        except KeyError:
            raise KeyError(f"No edge {parent} -> {child}") from None

    def _incoming(self, path: PopulationPath) -> Iterable[TemplateEdge]:
        return (self._edges[(PopulationPath(parent), path)] for parent in self._graph.predecessors(path))

    def get_parent_edge(self, path: str) -> TemplateEdge:
        """The data edge into a population (the one carrying its gating method)."""
        for edge in self._incoming(PopulationPath(path)):
            if not edge.is_reference:
                return edge
        raise KeyError(f"Population '{path}' has no parent edge")

    def get_parent(self, path: str) -> PopulationPath:
        return self.get_parent_edge(path).parent

    def get_children(self, path: str, include_references: bool = False) -> list[PopulationPath]:
        """Direct children of a population, in template order."""
        children = [
            PopulationPath(child)
            for child in self._graph.successors(PopulationPath(path))
            if include_references or not self._edges[(PopulationPath(path), PopulationPath(child))].is_reference
        ]
        return sorted(children, key=self._insertion.__getitem__)

    def get_method(self, parent: str, child: str) -> MethodDescriptor:
        """The gating method on the edge parent -> child."""
        method = self.get_edge(parent, child).method
        if method is None:
            raise KeyError(f"Edge {parent} -> {child} is ordering-only and carries no method")
        return method

    def get_preprocessing(self, parent: str, child: str) -> MethodDescriptor | None:
        """The preprocessing method on the edge parent -> child, if any."""
        return self.get_edge(parent, child).preprocessing

    def get_references(self, path: str) -> tuple[PopulationPath, ...]:
        """Populations a reference-like node depends on (empty for plain nodes)."""
        method = self.get_parent_edge(path).method
        return method.references if method is not None else ()

    def to_records(self) -> list[Mapping[str, Any]]:
        """Flat per-population summary in dispatch order, for display."""
        records: list[Mapping[str, Any]] = []
        for path in self.topological_order():
            if path == ROOT:
                continue
            node = self._nodes[path]
            edge = self.get_parent_edge(path)
            method = edge.method
            assert method is not None  # data edges always carry a method
            records.append(
                {
                    "path": path,
                    "alias": node.alias,
                    "parent": edge.parent,
                    "method": method.name,
                    "kind": method.kind.value,
                    "dims": ",".join(method.dims),
                    "group_by": str(method.group_by) if method.group_by is not None else "",
                    "collapse": method.collapse,
                    "preprocessing": edge.preprocessing.name if edge.preprocessing is not None else "",
                    "references": list(method.references),
                }
            )
        return records

    @classmethod
    def from_rows(cls, rows: Iterable[TemplateRow], name: str = "default") -> GatingTemplate:
        """Build a frozen template from validated rows.

        Raises:
            TemplateValidationError: If rows do not form a valid template
            ArgumentParseError: If any argument text is malformed
        """
        from cytogate.core.dag.builder import build_template

        return build_template(list(rows), name=name, cls=cls)
