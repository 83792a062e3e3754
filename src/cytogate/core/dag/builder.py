# src/cytogate/core/dag/builder.py
"""DAG construction from validated template rows.

Extracts the graph-building logic from GatingTemplate.from_rows() into a
module-level function. The classmethod facade on GatingTemplate delegates
here via lazy import to avoid circular dependencies.

Construction runs in two passes. The first resolves every row's parent and
full path in row order (a parent must be defined by an earlier row). The
second attaches nodes, data edges and method descriptors, and resolves the
dependency expressions of reference-like methods against the whole template.
Ordering-only edges are added last, once every population exists.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from cytogate.contracts.enums import MethodKind, PopulationKind
from cytogate.contracts.errors import TemplateValidationError
from cytogate.contracts.types import PATH_DELIMITER, ROOT, PopulationPath
from cytogate.core.arguments import parse_arguments
from cytogate.core.dag.models import (
    MethodDescriptor,
    PopulationNode,
    TemplateEdge,
    _suggest_similar,
    method_kind_for,
)
from cytogate.core.logging import get_logger
from cytogate.core.template.rows import check_alias

if TYPE_CHECKING:
    from cytogate.core.dag.graph import GatingTemplate
    from cytogate.core.template.rows import TemplateRow

logger = get_logger(__name__)

_ROOT_ALIASES = frozenset({"root", "/root", PATH_DELIMITER})
_BOOLEAN_OPERATORS = re.compile(r"[&|]")


def child_path(parent: PopulationPath, alias: str) -> PopulationPath:
    """Join a parent path and an alias, stripping the root prefix."""
    if parent == ROOT:
        return PopulationPath(f"{PATH_DELIMITER}{alias}")
    return PopulationPath(f"{parent}{PATH_DELIMITER}{alias}")


def _normalize_path(path: str) -> PopulationPath:
    """Strip a literal '/root' prefix from a user-written full path."""
    if path in _ROOT_ALIASES:
        return ROOT
    if path.startswith("/root/"):
        return PopulationPath(path[len("/root") :])
    return PopulationPath(path.rstrip(PATH_DELIMITER))


@dataclass
class _PopulationIndex:
    """Resolves population names (aliases or partial paths) to full paths."""

    entries: list[tuple[tuple[str, ...], PopulationPath]] = field(default_factory=list)

    def add(self, names: tuple[str, ...], path: PopulationPath) -> None:
        self.entries.append((names, path))

    @property
    def paths(self) -> list[PopulationPath]:
        return [path for _, path in self.entries]

    def matches(self, name: str) -> list[PopulationPath]:
        if name.startswith(PATH_DELIMITER):
            target = _normalize_path(name)
            return [path for path in self.paths if path == target]
        if PATH_DELIMITER in name:
            suffix = f"{PATH_DELIMITER}{name}"
            return [path for path in self.paths if path.endswith(suffix)]
        return [path for names, path in self.entries if name in names]

    def resolve(self, name: str, *, role: str, line: int) -> PopulationPath:
        """Resolve a name to exactly one path.

        Raises:
            TemplateValidationError: If nothing or more than one population matches
        """
        found = list(dict.fromkeys(self.matches(name)))
        if len(found) == 1:
            return found[0]
        if not found:
            candidates = sorted({n for names, _ in self.entries for n in names} | set(self.paths))
            suggestions = _suggest_similar(name, candidates)
            hint = f" Did you mean: {', '.join(suggestions)}?" if suggestions else ""
            raise TemplateValidationError(f"{role} '{name}' (row {line}) does not match any population.{hint}")
        raise TemplateValidationError(
            f"{role} '{name}' (row {line}) is ambiguous; it matches {', '.join(found)}. Use a path to disambiguate (e.g. 'parent/{name}')."
        )


def _resolve_parent(row: TemplateRow, index: _PopulationIndex) -> PopulationPath:
    parent = row.parent
    if not parent or parent in _ROOT_ALIASES or _normalize_path(parent) == ROOT:
        return ROOT
    return index.resolve(parent, role="Parent", line=row.line)


def _build_method(row: TemplateRow) -> MethodDescriptor:
    kind = method_kind_for(row.gating_method)
    # Dependency expressions contain '!', '&', '|', ':' and are not argument lists
    arguments = parse_arguments(row.gating_args, split=not kind.is_reference)

    if kind is MethodKind.REFERENCE and not row.dims:
        raise TemplateValidationError(f"No dimensions defined for refGate '{row.alias}' (row {row.line})!")

    return MethodDescriptor(
        name=row.gating_method,
        kind=kind,
        dims=row.dims,
        arguments=arguments,
        group_by=row.group_by,
        collapse=row.collapse,
        expression=str(arguments.unnamed()[0]) if kind.is_reference else None,
    )


def _build_preprocessing(row: TemplateRow) -> MethodDescriptor | None:
    arguments = parse_arguments(row.preprocessing_args, split=True)
    if not row.preprocessing_method:
        return None
    return MethodDescriptor(
        name=row.preprocessing_method,
        dims=row.dims,
        arguments=arguments,
        group_by=row.group_by,
        collapse=row.collapse,
    )


def reference_names(method: MethodDescriptor) -> list[str]:
    """Extract referenced population names from a dependency expression.

    Boolean expressions drop negations and split on '&' / '|'; other
    reference kinds split on ':'.
    """
    expression = method.expression or ""
    match method.kind:
        case MethodKind.BOOLEAN:
            parts = _BOOLEAN_OPERATORS.split(expression.replace("!", ""))
        case MethodKind.REFERENCE | MethodKind.POLYFUNCTIONAL | MethodKind.PLACEHOLDER:
            parts = expression.split(":")
        case MethodKind.PLAIN:
            return []
    return [part.strip() for part in parts if part.strip()]


def build_template(
    rows: list[TemplateRow],
    name: str = "default",
    cls: type[GatingTemplate] | None = None,
) -> GatingTemplate:
    """Build a frozen GatingTemplate from validated rows.

    Called by GatingTemplate.from_rows(). Method names are not checked
    against any registry here; unregistered methods surface at dispatch.

    Raises:
        TemplateValidationError: On aliases containing the path delimiter,
            unresolved/ambiguous parents or references,
            duplicate paths, refGate rows without dims, or cycles
        ArgumentParseError: On malformed argument text
    """
    if cls is None:
        from cytogate.core.dag.graph import GatingTemplate

        cls = GatingTemplate

    if not rows:
        raise TemplateValidationError("Cannot create gating template as it contains no gating entries.")

    template = cls(name=name)

    # Pass 1: population paths, in row order
    index = _PopulationIndex()
    resolved: list[tuple[TemplateRow, PopulationPath, PopulationPath]] = []
    seen: dict[PopulationPath, int] = {}
    for row in rows:
        for alias in row.aliases:
            check_alias(alias)
        parent = _resolve_parent(row, index)
        path = child_path(parent, row.alias)
        if path in seen:
            raise TemplateValidationError(f"Duplicate population path '{path}' (rows {seen[path]} and {row.line})")
        seen[path] = row.line
        index.add(row.lookup_names, path)
        resolved.append((row, parent, path))

    # Pass 2: nodes, data edges, descriptors
    ordering: list[tuple[PopulationPath, tuple[PopulationPath, ...]]] = []
    for row, parent, path in resolved:
        node = PopulationNode(path=path, name=row.pop, aliases=row.aliases)
        method = _build_method(row)
        preprocessing = _build_preprocessing(row)

        if method.is_reference:
            names = reference_names(method)
            if not names:
                raise TemplateValidationError(f"Reference method '{method.name}' for '{path}' (row {row.line}) names no populations")
            references = tuple(index.resolve(ref, role="Reference", line=row.line) for ref in names)
            method = replace(method, references=references)
            if method.kind is MethodKind.POLYFUNCTIONAL:
                node = replace(node, kind=PopulationKind.SUBSETS)
            ordering.append((path, references))

        template.add_node(node)
        template.add_edge(TemplateEdge(parent=parent, child=path, method=method, preprocessing=preprocessing))
        logger.info(
            "population added",
            population=node.alias,
            path=path,
            method=method.name,
            kind=method.kind.value,
            synthetic=row.synthetic,
        )

    # Ordering-only edges, once every referenced population exists
    for path, references in ordering:
        for ref in dict.fromkeys(references):
            template.add_edge(TemplateEdge(parent=ref, child=path, is_reference=True))

    template.freeze()
    return template
