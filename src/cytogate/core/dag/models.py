# src/cytogate/core/dag/models.py
"""Types and constants for the population DAG.

Leaf module: no imports from graph.py or builder.py (prevents import cycles).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cytogate.contracts.enums import MethodKind, PopulationKind
from cytogate.contracts.errors import TemplateValidationError
from cytogate.contracts.types import ROOT, PopulationPath
from cytogate.core.arguments import MethodArguments

# Method names whose argument text is a dependency expression, matched
# case-insensitively against the template's gating_method column.
REFERENCE_METHODS: dict[str, MethodKind] = {
    "boolgate": MethodKind.BOOLEAN,
    "polyfunctions": MethodKind.POLYFUNCTIONAL,
    "refgate": MethodKind.REFERENCE,
    "dummy_gate": MethodKind.PLACEHOLDER,
}

PLACEHOLDER_METHOD = "dummy_gate"


def method_kind_for(name: str) -> MethodKind:
    """Specialize a method name into its descriptor kind."""
    return REFERENCE_METHODS.get(name.lower(), MethodKind.PLAIN)


@dataclass(frozen=True, slots=True)
class GroupBy:
    """How samples are grouped before a method runs.

    Exactly one of the fields is set:
        every: Group every N consecutive samples
        columns: Group by the combination of these study-variable values
    """

    every: int | None = None
    columns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if (self.every is None) == (not self.columns):
            raise TemplateValidationError("groupBy must be either a sample count or a list of study variables")
        if self.every is not None and self.every < 1:
            raise TemplateValidationError(f"groupBy sample count must be positive, got {self.every}")

    def __str__(self) -> str:
        if self.every is not None:
            return str(self.every)
        return ":".join(self.columns)


@dataclass(frozen=True, slots=True)
class PopulationNode:
    """A population in the gating template.

    Attributes:
        path: Unique full path, e.g. '/lymph/cd3'
        name: Display name (the pop-pattern column, e.g. '+' or '*')
        aliases: User-facing names; several when one method yields several populations
        kind: ROOT, POPULATION, or SUBSETS (polyfunctional node awaiting expansion)
    """

    path: PopulationPath
    name: str
    aliases: tuple[str, ...]
    kind: PopulationKind = PopulationKind.POPULATION

    @property
    def alias(self) -> str:
        """Aliases joined as written in the template."""
        return ",".join(self.aliases)

    @property
    def is_root(self) -> bool:
        return self.kind is PopulationKind.ROOT

    @classmethod
    def root(cls) -> PopulationNode:
        return cls(path=ROOT, name="root", aliases=("root",), kind=PopulationKind.ROOT)


@dataclass(frozen=True, slots=True)
class MethodDescriptor:
    """A gating or preprocessing method attached to a template edge.

    One type for every method kind; `kind` is the discriminant. `expression`
    and `references` are only populated for reference-like kinds.

    Attributes:
        name: Method name from the template
        kind: Discriminant (plain, reference, boolean, polyfunctional, placeholder)
        dims: Dimensions (channels/markers); empty if not dimension-scoped
        arguments: Parsed argument pairs
        group_by: Grouping specifier, or None
        collapse: Whether data is collapsed within groups before the method runs
        expression: Raw dependency expression (reference-like kinds)
        references: Resolved paths of referenced populations (reference-like kinds)
    """

    name: str
    kind: MethodKind = MethodKind.PLAIN
    dims: tuple[str, ...] = ()
    arguments: MethodArguments = field(default_factory=MethodArguments)
    group_by: GroupBy | None = None
    collapse: bool = False
    expression: str | None = None
    references: tuple[PopulationPath, ...] = ()

    def __post_init__(self) -> None:
        if self.kind is MethodKind.PLAIN and (self.expression is not None or self.references):
            raise TemplateValidationError(f"Plain method '{self.name}' cannot carry population references")

    @property
    def is_reference(self) -> bool:
        return self.kind.is_reference


@dataclass(frozen=True, slots=True)
class TemplateEdge:
    """Edge between two populations.

    Data edges (parent -> child) carry the gating method and optional
    preprocessing method. Ordering-only edges (reference -> child) carry
    neither; they exist so the topological sort runs referenced populations
    first.
    """

    parent: PopulationPath
    child: PopulationPath
    method: MethodDescriptor | None = None
    preprocessing: MethodDescriptor | None = None
    is_reference: bool = False

    def __post_init__(self) -> None:
        if self.is_reference and (self.method is not None or self.preprocessing is not None):
            raise TemplateValidationError(f"Ordering-only edge {self.parent} -> {self.child} cannot carry a method")
        if not self.is_reference and self.method is None:
            raise TemplateValidationError(f"Edge {self.parent} -> {self.child} has no gating method")


def _suggest_similar(name: str, candidates: list[str]) -> list[str]:
    """Suggest similar names for resolution errors."""
    import difflib

    return difflib.get_close_matches(name, candidates, n=3, cutoff=0.6)
