# src/cytogate/core/template/rows.py
"""Validation and normalization of raw gating-template rows.

A raw row is a mapping of template column to string, as read from CSV.
validate_rows() checks alias legality, coerces the collapse flag and the
groupBy specifier, splits dims, detects wildcard (multi-output) rows, and
optionally appends placeholder rows that expose each output of a
multi-output method under its own alias.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from cytogate.contracts.errors import TemplateValidationError
from cytogate.contracts.types import PATH_DELIMITER
from cytogate.core.dag.models import PLACEHOLDER_METHOD, GroupBy
from cytogate.core.logging import get_logger

logger = get_logger(__name__)

REQUIRED_COLUMNS: tuple[str, ...] = (
    "alias",
    "pop",
    "parent",
    "dims",
    "gating_method",
    "gating_args",
    "collapseDataForGating",
    "groupBy",
    "preprocessing_method",
    "preprocessing_args",
)

DEFAULT_WILDCARD = "*"

# Operators of boolean and reference dependency expressions
RESERVED_ALIAS_CHARACTERS = "!&|:"

_TRUE_VALUES = frozenset({"true", "t", "yes", "y", "1"})
_FALSE_VALUES = frozenset({"false", "f", "no", "n", "0"})


@dataclass(frozen=True, slots=True)
class TemplateRow:
    """A validated template row.

    Attributes:
        line: 1-based row number in the template (synthetic rows reuse their source row's)
        alias: Alias column as written (comma-separated for multi-output rows)
        aliases: Individual aliases
        pop: Pop-pattern column (display name)
        parent: Parent column (alias, full path, 'root', or blank for root)
        dims: Dimensions, comma-split
        gating_method: Gating method name
        gating_args: Raw gating argument text
        collapse: Coerced collapseDataForGating flag
        group_by: Parsed groupBy, or None
        preprocessing_method: Preprocessing method name ('' if none)
        preprocessing_args: Raw preprocessing argument text
        multi_output: Whether the pop-pattern is the wildcard
        synthetic: Whether the row was generated (placeholder expansion)
        has_placeholders: Whether placeholder rows were generated for this multi-output row
    """

    line: int
    alias: str
    aliases: tuple[str, ...]
    pop: str
    parent: str
    dims: tuple[str, ...]
    gating_method: str
    gating_args: str
    collapse: bool
    group_by: GroupBy | None
    preprocessing_method: str = ""
    preprocessing_args: str = ""
    multi_output: bool = False
    synthetic: bool = False
    has_placeholders: bool = False

    @property
    def lookup_names(self) -> tuple[str, ...]:
        """Names under which other rows may refer to this row's population.

        A multi-output row whose outputs were exposed as placeholder rows
        answers only to its composite alias; the placeholders own the
        individual names.
        """
        if self.multi_output and self.has_placeholders:
            return (self.alias,)
        if self.multi_output:
            return (self.alias, *self.aliases)
        return self.aliases


def check_alias(alias: str) -> None:
    """Reject an alias containing the path delimiter.

    Raises:
        TemplateValidationError: If the alias contains '/'
    """
    if PATH_DELIMITER in alias:
        raise TemplateValidationError(
            f"Population name(or alias) '{alias}' contains '{PATH_DELIMITER}', which is reserved as gating path delimiter!"
        )


def _cell(row: Mapping[str, Any], column: str) -> str:
    value = row[column]
    if value is None:
        return ""
    return str(value).strip()


def parse_collapse(value: str, *, line: int = 0) -> bool:
    """Coerce a collapseDataForGating cell; blank means False."""
    text = value.strip()
    if text == "":
        return False
    lowered = text.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise TemplateValidationError(f"Invalid `collapseDataForGating` flag {text!r} (row {line})")


def parse_group_by(value: str, *, line: int = 0) -> GroupBy | None:
    """Parse a groupBy cell: blank, a sample count, or colon-joined study variables."""
    text = value.strip()
    if text == "":
        return None
    if text.isdigit():
        count = int(text)
        if count < 1:
            raise TemplateValidationError(f"groupBy sample count must be positive, got {text!r} (row {line})")
        return GroupBy(every=count)
    columns = tuple(part.strip() for part in text.split(":"))
    if any(not column for column in columns):
        raise TemplateValidationError(f"Invalid groupBy {text!r}: empty study variable name (row {line})")
    return GroupBy(columns=columns)


def split_dims(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _placeholder_rows(row: TemplateRow) -> list[TemplateRow]:
    return [
        TemplateRow(
            line=row.line,
            alias=alias,
            aliases=(alias,),
            pop=row.pop,
            parent=row.parent,
            dims=row.dims,
            gating_method=PLACEHOLDER_METHOD,
            gating_args=row.alias,
            collapse=row.collapse,
            group_by=row.group_by,
            synthetic=True,
        )
        for alias in row.aliases
    ]


def validate_row(
    row: Mapping[str, Any],
    *,
    line: int,
    strict: bool = True,
    wildcard: str = DEFAULT_WILDCARD,
    strip_extra_quotes: bool = False,
) -> TemplateRow:
    """Validate and normalize one raw row.

    Raises:
        TemplateValidationError: On a missing column, an alias containing the
            path delimiter, an alias containing a dependency-expression
            operator (strict mode), or an unparsable collapse/groupBy value
    """
    missing = [column for column in REQUIRED_COLUMNS if column not in row]
    if missing:
        raise TemplateValidationError(f"Template row {line} is missing required column(s): {', '.join(missing)}")

    alias = _cell(row, "alias")
    if not alias:
        raise TemplateValidationError(f"Template row {line} has an empty alias")
    check_alias(alias)
    if strict:
        reserved = sorted({char for char in alias if char in RESERVED_ALIAS_CHARACTERS})
        if reserved:
            raise TemplateValidationError(
                f"Population name(or alias) '{alias}' (row {line}) contains reserved character(s) {''.join(reserved)}; "
                "use strict=False to accept them"
            )

    pop = _cell(row, "pop")
    multi_output = pop == wildcard
    if multi_output:
        aliases = tuple(part.strip() for part in alias.split(",") if part.strip())
        if not aliases:
            raise TemplateValidationError(f"Multi-output row {line} declares no aliases")
    else:
        aliases = (alias,)

    gating_method = _cell(row, "gating_method")
    if not gating_method:
        raise TemplateValidationError(f"Template row {line} ('{alias}') has no gating_method")

    gating_args = _cell(row, "gating_args")
    if strip_extra_quotes:
        gating_args = gating_args.replace('""', '"')

    return TemplateRow(
        line=line,
        alias=alias,
        aliases=aliases,
        pop=pop,
        parent=_cell(row, "parent"),
        dims=split_dims(_cell(row, "dims")),
        gating_method=gating_method,
        gating_args=gating_args,
        collapse=parse_collapse(_cell(row, "collapseDataForGating"), line=line),
        group_by=parse_group_by(_cell(row, "groupBy"), line=line),
        preprocessing_method=_cell(row, "preprocessing_method"),
        preprocessing_args=_cell(row, "preprocessing_args"),
        multi_output=multi_output,
    )


def validate_rows(
    rows: Iterable[Mapping[str, Any]],
    *,
    strict: bool = True,
    wildcard: str = DEFAULT_WILDCARD,
    strip_extra_quotes: bool = False,
    expand_placeholders: bool = True,
) -> list[TemplateRow]:
    """Validate raw template rows, preserving input order.

    Args:
        rows: Raw rows (column -> cell text)
        strict: Reject aliases containing dependency-expression operators
            (!, &, |, :). The path delimiter is rejected regardless.
        wildcard: Pop-pattern marking multi-output rows
        strip_extra_quotes: Collapse doubled quotes in gating_args
        expand_placeholders: Follow each multi-output row with one placeholder
            row per alias

    Returns:
        Validated rows

    Raises:
        TemplateValidationError: If the template has no rows or any row is invalid
    """
    validated: list[TemplateRow] = []
    for line, raw in enumerate(rows, start=1):
        row = validate_row(raw, line=line, strict=strict, wildcard=wildcard, strip_extra_quotes=strip_extra_quotes)
        if row.multi_output and expand_placeholders and len(row.aliases) > 1:
            row = replace(row, has_placeholders=True)
            validated.append(row)
            placeholders = _placeholder_rows(row)
            validated.extend(placeholders)
            logger.debug("placeholders expanded", alias=row.alias, count=len(placeholders), line=line)
        else:
            validated.append(row)

    if not validated:
        raise TemplateValidationError("Cannot create gating template as it contains no gating entries.")
    return validated
