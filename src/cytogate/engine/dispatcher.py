# src/cytogate/engine/dispatcher.py
"""Dispatcher: walks a built gating template and runs each population's method.

Traversal is a single topological pass over the template, so every parent
and every referenced population is handled before the nodes that need it.
Per node the status moves from PENDING to exactly one of SKIPPED, COMPUTED
or FAILED. A failure stops the pass immediately; nothing is retried and
nothing already handed to the store is rolled back.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from cytogate.contracts.enums import ExecutionStrategy, MethodKind, NodeStatus
from cytogate.contracts.errors import ConfigurationError, MethodExecutionError
from cytogate.contracts.types import ROOT, GroupKey, PopulationPath
from cytogate.core.logging import get_logger, template_context
from cytogate.engine.partition import Partition, partition
from cytogate.engine.strategies import Executor, MethodCall, make_executor
from cytogate.plugins.protocols import ClusterClient, DataSource, PopulationStore

if TYPE_CHECKING:
    from cytogate.core.config import DispatchSettings
    from cytogate.core.dag.graph import GatingTemplate
    from cytogate.core.dag.models import MethodDescriptor
    from cytogate.plugins.registry import MethodRegistry

logger = get_logger(__name__)

PREPROCESSING_ARGUMENT = "pps_res"


@dataclass(frozen=True, slots=True)
class NodeOutcome:
    """What happened to one population during a dispatch.

    Attributes:
        path: Population path
        status: SKIPPED or COMPUTED (FAILED outcomes are never returned;
            the error propagates instead)
        result: Sample -> result (collapse=False) or group -> result
            (collapse=True); None when skipped or for placeholders
        preprocessing_result: Preprocessing results reshaped like result
            (per sample unless collapsed), or None without preprocessing
    """

    path: PopulationPath
    status: NodeStatus
    result: Mapping[str, Any] | None = None
    preprocessing_result: Mapping[str, Any] | None = None


@dataclass
class DispatchReport:
    """Ordered outcomes of one dispatch pass."""

    template: str
    outcomes: list[NodeOutcome] = field(default_factory=list)

    def __iter__(self) -> Iterator[NodeOutcome]:
        return iter(self.outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)

    def __getitem__(self, path: str) -> NodeOutcome:
        for outcome in self.outcomes:
            if outcome.path == path:
                return outcome
        raise KeyError(f"No outcome for population '{path}'")

    @property
    def computed(self) -> list[PopulationPath]:
        return [o.path for o in self.outcomes if o.status is NodeStatus.COMPUTED]

    @property
    def skipped(self) -> list[PopulationPath]:
        return [o.path for o in self.outcomes if o.status is NodeStatus.SKIPPED]


def reshape(
    groups: Partition,
    results: Sequence[Any],
    collapse: bool,
    sample_order: Sequence[str],
) -> dict[str, Any]:
    """Turn per-group results into the shape handed to the store.

    collapse=True keeps one result per group. Otherwise results are spread
    to samples in parent-data order: a group result that is a mapping over
    exactly that group's samples is split per sample, any other result is
    shared by every sample in its group.
    """
    if collapse:
        return dict(zip(groups, results, strict=True))

    per_sample: dict[str, Any] = {}
    for key, result in zip(groups, results, strict=True):
        samples = groups[key]
        if isinstance(result, Mapping) and set(result) == set(samples):
            per_sample.update({sample: result[sample] for sample in samples})
        else:
            per_sample.update(dict.fromkeys(samples, result))
    return {sample: per_sample[sample] for sample in sample_order}


class Dispatcher:
    """Executes a frozen gating template against a data source.

    Usage:
        registry = MethodRegistry()
        registry.register("mindensity", mindensity_gate)

        dispatcher = Dispatcher(registry, strategy=ExecutionStrategy.MULTICORE, workers=4)
        report = dispatcher.dispatch(template, workspace, workspace)
    """

    def __init__(
        self,
        registry: MethodRegistry,
        strategy: ExecutionStrategy | str = ExecutionStrategy.NONE,
        workers: int = 1,
        cluster: ClusterClient | None = None,
    ) -> None:
        self._registry = registry
        self._executor: Executor = make_executor(strategy, workers=workers, cluster=cluster)
        self._status: dict[PopulationPath, NodeStatus] = {}

    @classmethod
    def from_settings(
        cls,
        registry: MethodRegistry,
        settings: DispatchSettings,
        cluster: ClusterClient | None = None,
    ) -> Dispatcher:
        return cls(registry, strategy=settings.strategy, workers=settings.workers, cluster=cluster)

    @property
    def strategy(self) -> ExecutionStrategy:
        return self._executor.strategy

    def status(self, path: str) -> NodeStatus:
        """Status of a population in the latest dispatch.

        Raises:
            KeyError: If the population was not part of the latest dispatch
        """
        try:
            return self._status[PopulationPath(path)]
        except KeyError:
            raise KeyError(f"Population '{path}' was not dispatched") from None

    def dispatch(
        self,
        template: GatingTemplate,
        source: DataSource,
        store: PopulationStore,
        overrides: Mapping[str, Any] | None = None,
    ) -> DispatchReport:
        """Run every population of the template, in dependency order.

        Args:
            template: Frozen gating template
            source: Event data, channel lookup and study metadata
            store: Receives computed populations
            overrides: Keyword arguments applied over the template arguments
                of every gating and preprocessing method

        Returns:
            DispatchReport with one outcome per non-root population

        Raises:
            ConfigurationError: If collaborators are missing their protocol,
                or group-by study variables cannot be resolved
            RegistrationError: If a method is not registered
            MethodExecutionError: If a method implementation fails

        Errors raised by the source or the store propagate unchanged; the
        population is marked FAILED either way.
        """
        if not isinstance(source, DataSource):
            raise ConfigurationError(f"{type(source).__name__} does not implement the DataSource protocol")
        if not isinstance(store, PopulationStore):
            raise ConfigurationError(f"{type(store).__name__} does not implement the PopulationStore protocol")

        order = [path for path in template.topological_order() if path != ROOT]
        self._status = dict.fromkeys(order, NodeStatus.PENDING)
        report = DispatchReport(template=template.name)

        with template_context(template.name):
            logger.info("dispatch started", populations=len(order), strategy=self._executor.strategy.value)
            for path in order:
                try:
                    outcome = self._dispatch_node(template, path, source, store, overrides)
                except Exception as e:
                    self._status[path] = NodeStatus.FAILED
                    details = e.to_dict() if isinstance(e, MethodExecutionError) else {"path": path, "error": str(e)}
                    logger.error("population failed", error_type=type(e).__name__, **details)
                    raise
                self._status[path] = outcome.status
                report.outcomes.append(outcome)
            logger.info("dispatch finished", computed=len(report.computed), skipped=len(report.skipped))
        return report

    def _dispatch_node(
        self,
        template: GatingTemplate,
        path: PopulationPath,
        source: DataSource,
        store: PopulationStore,
        overrides: Mapping[str, Any] | None,
    ) -> NodeOutcome:
        node = template.get_node(path)
        parent = template.get_parent(path)
        method = template.get_method(parent, path)
        preprocessing = template.get_preprocessing(parent, path)
        log = logger.bind(path=path, method=method.name)

        if store.has_populations(parent, node.aliases):
            log.info("population already exists, skipping", parent=parent, aliases=list(node.aliases))
            return NodeOutcome(path=path, status=NodeStatus.SKIPPED)

        if method.kind is MethodKind.PLACEHOLDER:
            log.debug("placeholder population, nothing to compute")
            return NodeOutcome(path=path, status=NodeStatus.COMPUTED)

        # Both lookups before anything runs
        gating_fn = self._registry.lookup(method.name)
        preprocessing_fn = self._registry.lookup(preprocessing.name) if preprocessing is not None else None

        data = source.get_data(parent)
        groups = partition(data, method.group_by, method.collapse, source.get_metadata)
        log.info("computing population", parent=parent, groups=len(groups), samples=len(data))

        # Gating calls receive the preprocessing result of their own group
        pp_by_group: dict[GroupKey, Any] | None = None
        pp_result: dict[str, Any] | None = None
        if preprocessing is not None and preprocessing_fn is not None:
            pp_arguments = preprocessing.arguments.merged(overrides).named()
            pp_calls = self._calls(path, preprocessing, groups, source, pp_arguments)
            pp_results = self._executor.run(preprocessing_fn, pp_calls)
            pp_by_group = dict(zip(groups, pp_results, strict=True))
            pp_result = reshape(groups, pp_results, method.collapse, list(data))
            log.debug("preprocessing complete", preprocessing=preprocessing.name)

        arguments = method.arguments.merged(overrides).named()
        calls = self._calls(path, method, groups, source, arguments, pp_by_group)
        results = self._executor.run(gating_fn, calls)
        result = reshape(groups, results, method.collapse, list(data))

        store.add_population(parent, node, method, result)
        log.info("population computed", groups=len(groups))
        return NodeOutcome(path=path, status=NodeStatus.COMPUTED, result=result, preprocessing_result=pp_result)

    def _calls(
        self,
        path: PopulationPath,
        method: MethodDescriptor,
        groups: Partition,
        source: DataSource,
        arguments: Mapping[str, Any],
        pp_results: Mapping[GroupKey, Any] | None = None,
    ) -> list[MethodCall]:
        channels = tuple(source.get_channel(dim) for dim in method.dims)
        calls: list[MethodCall] = []
        for key, data in groups.items():
            call_arguments = dict(arguments)
            if pp_results is not None:
                call_arguments[PREPROCESSING_ARGUMENT] = pp_results[key]
            calls.append(
                MethodCall(
                    key=self._registry.key(method.name),
                    path=path,
                    group=key,
                    data=data,
                    channels=channels,
                    source=source,
                    method=method,
                    group_by=method.group_by,
                    collapse=method.collapse,
                    arguments=call_arguments,
                )
            )
        return calls