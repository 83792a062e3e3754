# src/cytogate/contracts/types.py
"""Semantic type aliases for compile-time type safety.

NewType creates distinct types that mypy treats as incompatible,
preventing accidental misuse of semantically different string values.
"""

from typing import NewType

PopulationPath = NewType("PopulationPath", str)
"""Full population path, e.g. '/lymph/cd3'. The root node is 'root'."""

GroupKey = NewType("GroupKey", str)
"""Name of a data partition (sample name, chunk number, 'all', or 'PTID:VISITNO' values)"""

ROOT = PopulationPath("root")
"""Path of the synthetic root node representing the ungated data set."""

PATH_DELIMITER = "/"
