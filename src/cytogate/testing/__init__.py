# src/cytogate/testing/__init__.py
"""In-memory collaborators and sample methods for tests and quick experiments.

InMemoryWorkspace implements both DataSource and PopulationStore over plain
dicts. Everything here is picklable so it also works with the multicore
strategy.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from cytogate.contracts.types import ROOT, PopulationPath
from cytogate.core.dag.builder import child_path
from cytogate.core.dag.models import GroupBy, MethodDescriptor, PopulationNode
from cytogate.core.template.rows import REQUIRED_COLUMNS


class InMemoryWorkspace:
    """Sample data, study metadata and computed populations, held in memory.

    Usage:
        workspace = InMemoryWorkspace(
            {"s1": [1, 2, 3], "s2": [4, 5]},
            metadata={"s1": {"PTID": "p1"}, "s2": {"PTID": "p2"}},
            channels={"CD3": "V450-A"},
        )

    A computed population's data is its parent's data; call set_data() to
    replace it. Multi-output populations are also materialized under each
    of their aliases.
    """

    def __init__(
        self,
        samples: Mapping[str, Any],
        metadata: Mapping[str, Mapping[str, Any]] | None = None,
        channels: Mapping[str, str] | None = None,
    ) -> None:
        self._data: dict[PopulationPath, dict[str, Any]] = {ROOT: dict(samples)}
        self._metadata = {sample: dict(values) for sample, values in (metadata or {}).items()}
        self._channels = dict(channels or {})
        self.results: dict[PopulationPath, Any] = {}
        self.added: list[PopulationPath] = []

    @property
    def samples(self) -> list[str]:
        return list(self._data[ROOT])

    # === DataSource ===

    def get_data(self, path: str) -> Mapping[str, Any]:
        try:
            return self._data[PopulationPath(path)]
        except KeyError:
            raise KeyError(f"Population '{path}' has no data in this workspace") from None

    def get_channel(self, dim: str) -> str:
        """Channel for a marker; unmapped dims are taken to be channel names already."""
        return self._channels.get(dim, dim)

    def get_metadata(self, sample: str) -> Mapping[str, Any]:
        return self._metadata.get(sample, {})

    # === PopulationStore ===

    def has_populations(self, parent: str, aliases: Sequence[str]) -> bool:
        return all(child_path(PopulationPath(parent), alias) in self._data for alias in aliases)

    def add_population(self, parent: str, node: PopulationNode, method: MethodDescriptor, result: Any) -> None:
        data = dict(self.get_data(parent))
        self._data[node.path] = data
        for alias in node.aliases:
            self._data.setdefault(child_path(PopulationPath(parent), alias), data)
        self.results[node.path] = result
        self.added.append(node.path)

    def set_data(self, path: str, data: Mapping[str, Any]) -> None:
        self._data[PopulationPath(path)] = dict(data)


def count_events(
    data: Mapping[str, Any],
    channels: Sequence[str],
    source: Any,
    method: MethodDescriptor,
    group_by: GroupBy | None,
    collapse: bool,
    **arguments: Any,
) -> dict[str, int]:
    """Number of events per sample in the group."""
    return {sample: len(events) for sample, events in data.items()}


def describe_call(
    data: Mapping[str, Any],
    channels: Sequence[str],
    source: Any,
    method: MethodDescriptor,
    group_by: GroupBy | None,
    collapse: bool,
    **arguments: Any,
) -> dict[str, Any]:
    """Echo what the method was called with."""
    return {
        "samples": list(data),
        "channels": list(channels),
        "method": method.name,
        "collapse": collapse,
        "arguments": dict(arguments),
    }


def failing_method(
    data: Mapping[str, Any],
    channels: Sequence[str],
    source: Any,
    method: MethodDescriptor,
    group_by: GroupBy | None,
    collapse: bool,
    **arguments: Any,
) -> Any:
    raise RuntimeError(f"cannot gate {', '.join(data)}")


def raw_row(alias: str, parent: str = "root", gating_method: str = "mindensity", **columns: str) -> dict[str, str]:
    """A raw template row with every required column; unspecified cells are blank.

    Example:
        raw_row("cd3", parent="lymph", dims="CD3", gating_args="gate_range=[1, 3]")
    """
    row = dict.fromkeys(REQUIRED_COLUMNS, "")
    row.update(alias=alias, pop="+", parent=parent, gating_method=gating_method)
    for column, value in columns.items():
        if column not in row:
            raise KeyError(f"Unknown template column '{column}'")
        row[column] = value
    return row
