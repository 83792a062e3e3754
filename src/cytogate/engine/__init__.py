# src/cytogate/engine/__init__.py
"""Dispatch engine: grouping, execution strategies, and the template walk."""

from cytogate.engine.dispatcher import DispatchReport, Dispatcher, NodeOutcome
from cytogate.engine.partition import Partition, partition
from cytogate.engine.strategies import (
    ClusterExecutor,
    MethodCall,
    MulticoreExecutor,
    SequentialExecutor,
    make_executor,
)

__all__ = [
    "ClusterExecutor",
    "DispatchReport",
    "Dispatcher",
    "MethodCall",
    "MulticoreExecutor",
    "NodeOutcome",
    "Partition",
    "SequentialExecutor",
    "make_executor",
    "partition",
]
