# src/cytogate/contracts/enums.py
"""All kinds, statuses and modes used across subsystem boundaries."""

from enum import StrEnum


class MethodKind(StrEnum):
    """Discriminant of a MethodDescriptor.

    Values:
        PLAIN: Ordinary gating step applied to the parent's data
        REFERENCE: Depends on other named populations (refGate)
        BOOLEAN: Logical AND/OR/NOT combination of populations (boolGate)
        POLYFUNCTIONAL: Boolean combination expanded later into many boolean gates
        PLACEHOLDER: No-op node exposing one output of a multi-output method
    """

    PLAIN = "plain"
    REFERENCE = "reference"
    BOOLEAN = "boolean"
    POLYFUNCTIONAL = "polyfunctional"
    PLACEHOLDER = "placeholder"

    @property
    def is_reference(self) -> bool:
        """Whether the kind's argument text is a dependency expression."""
        return self is not MethodKind.PLAIN


class PopulationKind(StrEnum):
    """Type of population node.

    SUBSETS marks a polyfunctional node that an external collaborator will
    expand into one population per boolean combination.
    """

    ROOT = "root"
    POPULATION = "population"
    SUBSETS = "subsets"


class ExecutionStrategy(StrEnum):
    """How a node's per-group method calls are executed."""

    NONE = "none"
    MULTICORE = "multicore"
    CLUSTER = "cluster"


class NodeStatus(StrEnum):
    """Dispatch status of a population node."""

    PENDING = "pending"
    SKIPPED = "skipped"
    COMPUTED = "computed"
    FAILED = "failed"
