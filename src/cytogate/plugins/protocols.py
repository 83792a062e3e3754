# src/cytogate/plugins/protocols.py
"""Protocols for the collaborators the dispatcher consumes.

These protocols define what the embedding system must provide. They're used
for type checking and `isinstance` checks at the dispatch boundary; they do
not prescribe how event data is stored.

Collaborators:
- GatingMethod: a registered processing method, called once per data group
- DataSource: per-population event data, channel lookup, study metadata
- PopulationStore: idempotency query and hand-off of computed results
- ClusterClient: remote worker set for the cluster execution strategy
"""

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cytogate.core.dag.models import GroupBy, MethodDescriptor, PopulationNode


class GatingMethod(Protocol):
    """Fixed call signature of every registered method.

    Example:
        def threshold_gate(data, channels, source, method, group_by, collapse, *, cutoff=0.5):
            return {sample: events[channels[0]] > cutoff for sample, events in data.items()}

    Args:
        data: One group's data, ordered mapping of sample name to payload
        channels: Channel names resolved from the descriptor's dims
        source: The data source the dispatch runs against
        method: The descriptor that triggered the call
        group_by: The descriptor's group-by specifier
        collapse: The descriptor's collapse flag
        **arguments: Template arguments merged with caller overrides

    Returns:
        One result for the group.
    """

    def __call__(
        self,
        data: Mapping[str, Any],
        channels: Sequence[str],
        source: "DataSource",
        method: "MethodDescriptor",
        group_by: "GroupBy | None",
        collapse: bool,
        /,
        **arguments: Any,
    ) -> Any: ...


@runtime_checkable
class DataSource(Protocol):
    """Read access to event data and its metadata."""

    def get_data(self, path: str) -> Mapping[str, Any]:
        """Return the population's data keyed by sample name, in sample order."""
        ...

    def get_channel(self, dim: str) -> str:
        """Resolve a dimension (channel or marker name) to a channel name."""
        ...

    def get_metadata(self, sample: str) -> Mapping[str, Any]:
        """Return the study variables (phenotype data) recorded for a sample."""
        ...


@runtime_checkable
class PopulationStore(Protocol):
    """Where computed populations are materialized."""

    def has_populations(self, parent: str, aliases: Sequence[str]) -> bool:
        """Whether every alias already exists as a child of parent."""
        ...

    def add_population(self, parent: str, node: "PopulationNode", method: "MethodDescriptor", result: Any) -> None:
        """Materialize a computed population under parent."""
        ...


class ClusterFuture(Protocol):
    def result(self) -> Any: ...

    def cancel(self) -> Any: ...


@runtime_checkable
class ClusterClient(Protocol):
    """Worker-set handle for the cluster strategy.

    `dask.distributed.Client` satisfies this protocol.
    """

    def submit(self, func: Any, *args: Any, **kwargs: Any) -> ClusterFuture: ...
