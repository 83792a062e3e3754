# src/cytogate/engine/strategies.py
"""Execution strategies for a node's per-group method calls.

Every strategy takes the same list of MethodCall values and returns one
result per call, in call order. Concurrency only ever spans the groups of a
single node; nodes themselves run one after another.

Strategies:
- SequentialExecutor: plain loop in the calling process
- MulticoreExecutor: process pool on the local machine
- ClusterExecutor: a pre-established worker set (e.g. dask.distributed.Client)

The first failing call aborts the node: pending calls are cancelled and the
failure is raised as MethodExecutionError with the original exception chained.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Future, ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from cytogate.contracts.enums import ExecutionStrategy
from cytogate.contracts.errors import ConfigurationError, MethodExecutionError
from cytogate.contracts.types import GroupKey, PopulationPath
from cytogate.core.logging import get_logger
from cytogate.plugins.protocols import ClusterClient

if TYPE_CHECKING:
    from cytogate.core.dag.models import GroupBy, MethodDescriptor

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class MethodCall:
    """One invocation of a registered method on one group.

    Attributes:
        key: Registry key of the method (e.g. '.mindensity')
        path: Population being computed
        group: Group key from the partition
        data: The group's ordered sample -> payload mapping
        channels: Channel names resolved from the descriptor's dims
        source: Data source the dispatch runs against
        method: Descriptor that triggered the call
        group_by: The descriptor's group-by specifier
        collapse: The descriptor's collapse flag
        arguments: Keyword arguments (template arguments merged with overrides)
    """

    key: str
    path: PopulationPath
    group: GroupKey
    data: Mapping[str, Any]
    channels: tuple[str, ...]
    source: Any
    method: MethodDescriptor
    group_by: GroupBy | None
    collapse: bool
    arguments: Mapping[str, Any] = field(default_factory=dict)

    def invoke(self, fn: Callable[..., Any]) -> Any:
        return fn(
            self.data,
            list(self.channels),
            self.source,
            self.method,
            self.group_by,
            self.collapse,
            **self.arguments,
        )

    def failure(self, error: BaseException) -> MethodExecutionError:
        """Wrap an implementation failure for this call."""
        return MethodExecutionError(
            f"Method '{self.key}' failed for population '{self.path}' (group '{self.group}'): {error}",
            path=self.path,
            method=self.key,
            group=self.group,
        )


def _run_call(fn: Callable[..., Any], call: MethodCall) -> Any:
    """Module-level entry point so workers can unpickle the task."""
    return call.invoke(fn)


class Executor(Protocol):
    """Runs a node's method calls and returns results in call order."""

    strategy: ExecutionStrategy

    def run(self, fn: Callable[..., Any], calls: Sequence[MethodCall]) -> list[Any]: ...


class SequentialExecutor:
    """Calls each group in turn in the calling process."""

    strategy = ExecutionStrategy.NONE

    def run(self, fn: Callable[..., Any], calls: Sequence[MethodCall]) -> list[Any]:
        results: list[Any] = []
        for call in calls:
            try:
                results.append(call.invoke(fn))
            except Exception as e:
                raise call.failure(e) from e
        return results


class MulticoreExecutor:
    """Runs groups in a local process pool.

    The method, its arguments and the group data must be picklable.
    """

    strategy = ExecutionStrategy.MULTICORE

    def __init__(self, workers: int) -> None:
        if workers < 1:
            raise ConfigurationError(f"multicore strategy needs at least one worker, got {workers}")
        self._workers = workers

    @property
    def workers(self) -> int:
        return self._workers

    def run(self, fn: Callable[..., Any], calls: Sequence[MethodCall]) -> list[Any]:
        if not calls:
            return []

        logger.debug("running in parallel", strategy=self.strategy.value, workers=self._workers, groups=len(calls))
        results: dict[int, Any] = {}
        with ProcessPoolExecutor(max_workers=min(self._workers, len(calls))) as pool:
            futures: dict[Future[Any], int] = {pool.submit(_run_call, fn, call): index for index, call in enumerate(calls)}
            for future in as_completed(futures):
                index = futures[future]
                try:
                    results[index] = future.result()
                except Exception as e:
                    for pending in futures:
                        pending.cancel()
                    raise calls[index].failure(e) from e

        return [results[index] for index in range(len(calls))]


class ClusterExecutor:
    """Submits groups to a pre-established worker set.

    Any client whose ``submit(fn, *args)`` returns futures with ``result()``
    works; ``dask.distributed.Client`` is the usual choice.
    """

    strategy = ExecutionStrategy.CLUSTER

    def __init__(self, client: ClusterClient | None) -> None:
        if client is None:
            raise ConfigurationError("cluster strategy requires a worker-set client, got None")
        if not isinstance(client, ClusterClient):
            raise ConfigurationError(f"cluster client {type(client).__name__} has no submit() method")
        self._client = client

    def run(self, fn: Callable[..., Any], calls: Sequence[MethodCall]) -> list[Any]:
        if not calls:
            return []

        logger.debug("running in parallel", strategy=self.strategy.value, groups=len(calls))
        futures = [self._client.submit(_run_call, fn, call) for call in calls]
        results: list[Any] = []
        for index, future in enumerate(futures):
            try:
                results.append(future.result())
            except Exception as e:
                for pending in futures[index + 1 :]:
                    pending.cancel()
                raise calls[index].failure(e) from e
        return results


def make_executor(
    strategy: ExecutionStrategy | str,
    *,
    workers: int = 1,
    cluster: ClusterClient | None = None,
) -> Executor:
    """Build the executor for a strategy.

    Raises:
        ConfigurationError: On an unknown strategy, a non-positive worker
            count, or the cluster strategy without a client
    """
    try:
        strategy = ExecutionStrategy(strategy)
    except ValueError:
        valid = ", ".join(s.value for s in ExecutionStrategy)
        raise ConfigurationError(f"Unknown execution strategy '{strategy}'. Valid strategies: {valid}") from None

    if workers < 1:
        raise ConfigurationError(f"workers must be at least 1, got {workers}")

    match strategy:
        case ExecutionStrategy.NONE:
            return SequentialExecutor()
        case ExecutionStrategy.MULTICORE:
            return MulticoreExecutor(workers)
        case ExecutionStrategy.CLUSTER:
            return ClusterExecutor(cluster)
