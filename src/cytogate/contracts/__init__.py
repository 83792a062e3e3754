# src/cytogate/contracts/__init__.py
"""Shared contracts: enums, semantic types and the error taxonomy.

Leaf package; imports nothing else from cytogate.
"""

from cytogate.contracts.enums import ExecutionStrategy, MethodKind, NodeStatus, PopulationKind
from cytogate.contracts.errors import (
    ArgumentParseError,
    ConfigurationError,
    CytogateError,
    MethodExecutionError,
    RegistrationError,
    TemplateValidationError,
)
from cytogate.contracts.types import PATH_DELIMITER, ROOT, GroupKey, PopulationPath

__all__ = [
    "PATH_DELIMITER",
    "ROOT",
    "ArgumentParseError",
    "ConfigurationError",
    "CytogateError",
    "ExecutionStrategy",
    "GroupKey",
    "MethodExecutionError",
    "MethodKind",
    "NodeStatus",
    "PopulationKind",
    "PopulationPath",
    "RegistrationError",
    "TemplateValidationError",
]
