# tests/engine/test_strategies.py
"""Tests for execution strategies."""

from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

import pytest

from cytogate.contracts.enums import ExecutionStrategy
from cytogate.contracts.errors import ConfigurationError, MethodExecutionError
from cytogate.contracts.types import GroupKey, PopulationPath
from cytogate.core.dag.models import MethodDescriptor
from cytogate.engine.strategies import (
    ClusterExecutor,
    MethodCall,
    MulticoreExecutor,
    SequentialExecutor,
    make_executor,
)
from cytogate.testing import count_events, describe_call, failing_method

METHOD = MethodDescriptor(name="mindensity", dims=("CD3",))


def _calls(groups: dict[str, dict[str, Any]], **arguments: Any) -> list[MethodCall]:
    return [
        MethodCall(
            key=".mindensity",
            path=PopulationPath("/cd3"),
            group=GroupKey(key),
            data=data,
            channels=("V450-A",),
            source=None,
            method=METHOD,
            group_by=None,
            collapse=False,
            arguments=arguments,
        )
        for key, data in groups.items()
    ]


GROUPS = {
    "g1": {"s1": [1, 2, 3]},
    "g2": {"s2": [1], "s3": [1, 2]},
    "g3": {"s4": []},
}


class _InlineClient:
    """Cluster client that runs each task at submit time."""

    def __init__(self) -> None:
        self.futures: list[Future[Any]] = []

    def submit(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future[Any]:
        future: Future[Any] = Future()
        try:
            future.set_result(func(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        self.futures.append(future)
        return future


class TestMethodCall:
    def test_invoke_passes_fixed_signature(self) -> None:
        (call,) = _calls({"g1": {"s1": [1]}}, k=2)

        result = call.invoke(describe_call)

        assert result == {
            "samples": ["s1"],
            "channels": ["V450-A"],
            "method": "mindensity",
            "collapse": False,
            "arguments": {"k": 2},
        }

    def test_failure_carries_context(self) -> None:
        (call,) = _calls({"g1": {"s1": [1]}})

        error = call.failure(RuntimeError("boom"))

        assert error.to_dict()["group"] == "g1"
        assert error.path == "/cd3"
        assert error.method == ".mindensity"


class TestSequentialExecutor:
    def test_results_in_call_order(self) -> None:
        results = SequentialExecutor().run(count_events, _calls(GROUPS))

        assert results == [{"s1": 3}, {"s2": 1, "s3": 2}, {"s4": 0}]

    def test_failure_is_wrapped_and_chained(self) -> None:
        with pytest.raises(MethodExecutionError) as exc_info:
            SequentialExecutor().run(failing_method, _calls(GROUPS))

        error = exc_info.value
        assert error.group == "g1"
        assert isinstance(error.__cause__, RuntimeError)
        assert error.to_dict()["type"] == "RuntimeError"

    def test_stops_at_first_failure(self) -> None:
        seen: list[str] = []

        def flaky(data: Any, *args: Any, **kwargs: Any) -> Any:
            seen.extend(data)
            if "s2" in data:
                raise ValueError("bad group")
            return None

        with pytest.raises(MethodExecutionError, match="g2"):
            SequentialExecutor().run(flaky, _calls(GROUPS))

        assert seen == ["s1", "s2", "s3"]


@pytest.mark.slow
class TestMulticoreExecutor:
    def test_results_in_call_order(self) -> None:
        results = MulticoreExecutor(workers=2).run(count_events, _calls(GROUPS))

        assert results == [{"s1": 3}, {"s2": 1, "s3": 2}, {"s4": 0}]

    def test_failure_is_wrapped(self) -> None:
        with pytest.raises(MethodExecutionError) as exc_info:
            MulticoreExecutor(workers=2).run(failing_method, _calls(GROUPS))

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_no_calls(self) -> None:
        assert MulticoreExecutor(workers=2).run(count_events, []) == []


class TestClusterExecutor:
    def test_results_in_submission_order(self) -> None:
        client = _InlineClient()

        results = ClusterExecutor(client).run(count_events, _calls(GROUPS))

        assert results == [{"s1": 3}, {"s2": 1, "s3": 2}, {"s4": 0}]
        assert len(client.futures) == 3

    def test_failure_is_wrapped(self) -> None:
        with pytest.raises(MethodExecutionError) as exc_info:
            ClusterExecutor(_InlineClient()).run(failing_method, _calls(GROUPS))

        assert exc_info.value.group == "g1"

    def test_requires_client(self) -> None:
        with pytest.raises(ConfigurationError, match="requires a worker-set client"):
            ClusterExecutor(None)

    def test_rejects_object_without_submit(self) -> None:
        with pytest.raises(ConfigurationError, match="submit"):
            ClusterExecutor(object())  # type: ignore[arg-type]


class TestMakeExecutor:
    def test_none_is_sequential(self) -> None:
        assert isinstance(make_executor("none"), SequentialExecutor)

    def test_multicore(self) -> None:
        executor = make_executor(ExecutionStrategy.MULTICORE, workers=3)

        assert isinstance(executor, MulticoreExecutor)
        assert executor.workers == 3

    def test_cluster(self) -> None:
        assert isinstance(make_executor("cluster", cluster=_InlineClient()), ClusterExecutor)

    def test_cluster_without_client(self) -> None:
        with pytest.raises(ConfigurationError):
            make_executor("cluster")

    @pytest.mark.parametrize("workers", [0, -1])
    def test_invalid_worker_count(self, workers: int) -> None:
        with pytest.raises(ConfigurationError, match="workers"):
            make_executor("multicore", workers=workers)

    def test_unknown_strategy(self) -> None:
        with pytest.raises(ConfigurationError, match="Valid strategies: none, multicore, cluster"):
            make_executor("threads")
